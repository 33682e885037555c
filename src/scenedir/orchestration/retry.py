"""Retry policy for provider calls.

Rate-limit and overload signals are transient and retried with a doubling
delay; permission failures are fatal and never retried. Anything else is
treated as transient up to ``max_attempts``.
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from google.api_core import exceptions as google_exceptions

from ..errors import PreconditionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 2.0  # seconds

_RATE_LIMIT_MARKERS = re.compile(
    r"\b429\b|rate limit|quota|resource[_ ]exhausted", re.IGNORECASE
)
_OVERLOAD_MARKERS = re.compile(r"\b503\b|overloaded|unavailable", re.IGNORECASE)
_PERMISSION_MARKERS = re.compile(r"\b403\b|permission[_ ]denied|forbidden", re.IGNORECASE)


class FailureKind(str, Enum):
    """Classification of a failed provider call."""

    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    PERMISSION = "permission"
    PRECONDITION = "precondition"
    OTHER = "other"

    @property
    def retryable(self) -> bool:
        return self not in (FailureKind.PERMISSION, FailureKind.PRECONDITION)


def classify_failure(error: BaseException) -> FailureKind:
    """Classify an exception raised by a provider call."""
    if isinstance(error, PreconditionError):
        return FailureKind.PRECONDITION
    if isinstance(error, (google_exceptions.Forbidden, google_exceptions.Unauthorized)):
        return FailureKind.PERMISSION
    if isinstance(error, google_exceptions.TooManyRequests):
        return FailureKind.RATE_LIMITED
    if isinstance(error, google_exceptions.ServiceUnavailable):
        return FailureKind.OVERLOADED

    # Typed API errors already carry their status; messages may embed request URLs
    if isinstance(error, google_exceptions.GoogleAPICallError):
        return FailureKind.OTHER

    message = str(error)
    if _PERMISSION_MARKERS.search(message):
        return FailureKind.PERMISSION
    if _RATE_LIMIT_MARKERS.search(message):
        return FailureKind.RATE_LIMITED
    if _OVERLOAD_MARKERS.search(message):
        return FailureKind.OVERLOADED
    return FailureKind.OTHER


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    operation: str = "provider call",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """Await ``fn()`` with bounded exponential backoff.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt.
        max_attempts: Total attempts, including the first.
        initial_delay: Seconds before the second attempt; doubled afterwards.
        operation: Name used in log messages.
        sleep: Awaitable sleep, replaceable in tests.

    Returns:
        The first successful result.

    Raises:
        The last error once attempts are exhausted, or a fatal error immediately.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    sleep = sleep or asyncio.sleep

    for attempt in range(max_attempts):
        try:
            return await fn()

        except Exception as e:
            kind = classify_failure(e)
            if not kind.retryable:
                logger.error(f"{operation}: {kind.value} failure, not retrying: {e}")
                raise

            if attempt == max_attempts - 1:
                logger.error(f"{operation}: giving up after {max_attempts} attempts: {e}")
                raise

            delay = initial_delay * (2**attempt)
            logger.warning(
                f"{operation}: {kind.value} failure (attempt {attempt + 1}/{max_attempts}): "
                f"{e}. Retrying in {delay:.1f}s..."
            )
            await sleep(delay)

    raise RuntimeError("unreachable")
