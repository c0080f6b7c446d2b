"""
Domain exception hierarchy for the incentive engine.

Every error carries a machine-readable ``code`` so API clients can branch on
it without parsing the French message.
"""
from __future__ import annotations

from typing import Any

from rest_framework import status


class IncentiveError(Exception):
    """Base class for all engine-level errors."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFound(IncentiveError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} introuvable.",
            details={"resource": resource, "id": str(identifier)},
        )


class ValidationError(IncentiveError):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class DuplicateCommission(IncentiveError):
    """A ledger entry already exists for the idempotency key."""

    http_status = status.HTTP_409_CONFLICT
    code = "DUPLICATE_COMMISSION"

    def __init__(self, commission_type: str, dedup_key: str | None = None):
        super().__init__(
            message=f"Une commission {commission_type} existe deja pour cet evenement.",
            details={"type": commission_type, "dedup_key": dedup_key or ""},
        )


class TransientStoreError(IncentiveError):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORE_UNAVAILABLE"

    def __init__(self, operation_name: str, attempts: int):
        super().__init__(
            message=f"{operation_name} a echoue apres {attempts} tentative(s).",
            details={"operation": operation_name, "attempts": attempts},
        )
