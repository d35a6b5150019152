"""
Utilities
=========

This module provides the retry executor used around calls to external
services that may fail transiently (rate limiting, overload, 5xx).

`call_with_retry` is the generic loop: it retries an operation with
exponential backoff (``base_delay * 2**attempt``) only while the supplied
``is_retryable`` predicate accepts the raised error. Non-retryable errors and
the last error after the retries run out are re-raised unchanged. The `retry`
decorator binds the loop to a client method, reading its limits from the
client's ``settings``.
"""

import time
from functools import wraps
from typing import Callable, TypeVar

import structlog

log = structlog.get_logger(__name__)
T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Return the delay before retry number ``attempt + 1`` (attempt is 0-based)."""
    return base_delay * (2**attempt)


def call_with_retry(
    operation: Callable[[], T],
    *,
    is_retryable: Callable[[Exception], bool],
    max_retries: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    name: str = "operation",
) -> T:
    """
    Run ``operation``, retrying transient failures with exponential backoff.

    Args:
        operation: Zero-argument callable performing the external call.
        is_retryable: Predicate deciding whether a raised error is transient.
        max_retries: Retries after the first attempt (total attempts = max_retries + 1).
        base_delay: Delay in seconds before the first retry; doubled each retry.
        sleep: Injectable sleep function (primarily for tests).
        name: Label used in log messages.
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")

    for attempt in range(max_retries + 1):
        try:
            return operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt == max_retries:
                log.error(
                    "Retries exhausted",
                    operation=name,
                    attempts=attempt + 1,
                    error=str(e),
                )
                raise
            delay = backoff_delay(attempt, base_delay)
            log.warning(
                "Transient failure; retrying",
                operation=name,
                retry=attempt + 1,
                max_retries=max_retries,
                delay_seconds=delay,
                error=str(e)[:120],
            )
            sleep(delay)
    # This part should be unreachable
    raise RuntimeError("Retry loop exited unexpectedly.")


def retry(
    is_retryable: Callable[[Exception], bool],
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    A decorator that retries a method call on transient errors.

    The decorated method's instance must expose ``settings`` with
    ``MAX_RETRIES`` and ``RETRY_BASE_DELAY_SECONDS``. An optional ``sleep``
    attribute on the instance replaces ``time.sleep``.

    Args:
        is_retryable: A predicate returning True for errors that should be retried.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self, *args, **kwargs) -> T:
            settings = self.settings
            return call_with_retry(
                lambda: func(self, *args, **kwargs),
                is_retryable=is_retryable,
                max_retries=settings.MAX_RETRIES,
                base_delay=settings.RETRY_BASE_DELAY_SECONDS,
                sleep=getattr(self, "sleep", None) or time.sleep,
                name=func.__name__,
            )

        return wrapper

    return decorator
