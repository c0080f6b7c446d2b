"""Bounded retry around database work for transient connectivity failures.

Only connection-level errors are retried. Integrity errors, missing rows and
domain validation failures propagate on the first attempt.
"""
from __future__ import annotations

import functools
import logging
from typing import Callable, TypeVar

from django.conf import settings
from django.db import InterfaceError, OperationalError, connection
from tenacity import RetryError, Retrying, retry_if_exception, stop_after_attempt, wait_incrementing

from core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONNECTION_ERROR_MESSAGES = (
    "can't reach database server",
    "could not connect to server",
    "connection refused",
    "timeout",
    "timed out",
    "server has closed the connection",
    "server closed the connection unexpectedly",
    "connection terminated",
    "connection already closed",
    "database is starting up",
)


def is_connection_error(exc: BaseException) -> bool:
    if not isinstance(exc, (OperationalError, InterfaceError)):
        return False
    message = str(exc).lower()
    return any(fragment in message for fragment in CONNECTION_ERROR_MESSAGES)


def _before_retry(operation_name: str, attempts: int, retry_state) -> None:
    logger.warning(
        "%s failed (attempt %d/%d): %s",
        operation_name,
        retry_state.attempt_number,
        attempts,
        retry_state.outcome.exception(),
    )
    # Outside a transaction the broken connection is dropped; the next
    # attempt reconnects lazily.
    if not connection.in_atomic_block:
        connection.close()


def with_db_retry(
    operation: Callable[[], T],
    operation_name: str = "Operation base de donnees",
    *,
    max_attempts: int | None = None,
    retry_delay_ms: int | None = None,
) -> T:
    """Run ``operation`` and retry it on connection loss.

    Parameters
    ----------
    operation : callable
        Zero-argument callable performing the database work.
    operation_name : str
        Label used in log lines and in the raised error.
    max_attempts : int, optional
        Total attempts. Defaults to ``settings.DB_RETRY_ATTEMPTS``.
    retry_delay_ms : int, optional
        Base delay; attempt ``n`` waits ``n * retry_delay_ms``. Defaults to
        ``settings.DB_RETRY_DELAY_MS``.

    Raises
    ------
    TransientStoreError
        When every attempt failed with a connection error.
    """
    attempts = max_attempts or getattr(settings, "DB_RETRY_ATTEMPTS", 2)
    delay_ms = retry_delay_ms if retry_delay_ms is not None else getattr(settings, "DB_RETRY_DELAY_MS", 500)
    delay = delay_ms / 1000

    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_incrementing(start=delay, increment=delay),
        retry=retry_if_exception(is_connection_error),
        before_sleep=functools.partial(_before_retry, operation_name, attempts),
    )
    try:
        return retrying(operation)
    except RetryError as exc:
        last_exc = exc.last_attempt.exception()
        logger.error("%s failed after %d attempts: %s", operation_name, attempts, last_exc)
        raise TransientStoreError(operation_name, attempts) from last_exc


def db_retry(operation_name: str | None = None):
    """Decorator form of :func:`with_db_retry`."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        label = operation_name or func.__qualname__

        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return with_db_retry(lambda: func(*args, **kwargs), label)

        return wrapper

    return decorator
