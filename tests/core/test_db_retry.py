import pytest
from django.db import IntegrityError, OperationalError

from core.db import db_retry, is_connection_error, with_db_retry
from core.exceptions import TransientStoreError


class FlakyOperation:
    def __init__(self, failures, exc_factory):
        self.failures = failures
        self.exc_factory = exc_factory
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_factory()
        return "ok"


def test_connection_errors_are_recognised():
    assert is_connection_error(OperationalError("could not connect to server: Connection refused"))
    assert is_connection_error(OperationalError("SSL SYSCALL error: server closed the connection unexpectedly"))
    assert not is_connection_error(OperationalError("no such table: targets_target"))
    assert not is_connection_error(ValueError("connection refused"))


def test_retry_recovers_after_transient_failure():
    operation = FlakyOperation(1, lambda: OperationalError("connection refused"))
    assert with_db_retry(operation, "load_targets", max_attempts=2, retry_delay_ms=0) == "ok"
    assert operation.calls == 2


def test_retry_gives_up_with_transient_store_error():
    operation = FlakyOperation(5, lambda: OperationalError("timeout expired"))
    with pytest.raises(TransientStoreError) as excinfo:
        with_db_retry(operation, "load_targets", max_attempts=3, retry_delay_ms=0)
    assert operation.calls == 3
    assert excinfo.value.details == {"operation": "load_targets", "attempts": 3}
    assert excinfo.value.http_status == 503
    assert isinstance(excinfo.value.__cause__, OperationalError)


def test_non_connection_errors_propagate_immediately():
    operation = FlakyOperation(1, lambda: IntegrityError("UNIQUE constraint failed"))
    with pytest.raises(IntegrityError):
        with_db_retry(operation, max_attempts=3, retry_delay_ms=0)
    assert operation.calls == 1


def test_operational_error_without_connection_message_is_not_retried():
    operation = FlakyOperation(1, lambda: OperationalError("database is locked"))
    with pytest.raises(OperationalError):
        with_db_retry(operation, max_attempts=3, retry_delay_ms=0)
    assert operation.calls == 1


def test_decorator_uses_settings_attempts(settings):
    settings.DB_RETRY_ATTEMPTS = 2
    settings.DB_RETRY_DELAY_MS = 0
    operation = FlakyOperation(1, lambda: OperationalError("connection terminated"))

    @db_retry("decorated")
    def run():
        return operation()

    assert run() == "ok"
    assert operation.calls == 2
