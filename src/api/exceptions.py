"""DRF exception handler rendering engine errors as ``{code, message, details}``."""
from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import IncentiveError

logger = logging.getLogger(__name__)


def incentive_exception_handler(exc, context):
    if isinstance(exc, IncentiveError):
        if exc.http_status >= 500:
            logger.error("%s: %s", exc.code, exc.message, extra={"details": exc.details})
        return Response(exc.to_dict(), status=exc.http_status)

    if isinstance(exc, DjangoValidationError):
        details = exc.message_dict if hasattr(exc, "error_dict") else {"errors": exc.messages}
        return Response(
            {"code": "VALIDATION_ERROR", "message": "Donnees invalides.", "details": details},
            status=status.HTTP_400_BAD_REQUEST,
        )

    return exception_handler(exc, context)
