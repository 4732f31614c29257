"""
Retry - Exponential backoff for remote model calls

Transient failures (timeouts, dropped connections, 429 and 5xx responses)
are retried with exponential backoff capped at max_backoff. Anything else
is raised on the first failure. Backoff is driven by tenacity.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

TRANSIENT_MESSAGES = (
    "timeout",
    "timed out",
    "econnreset",
    "econnrefused",
    "connection reset",
    "connection refused",
)


@dataclass
class RetryOptions:
    """Retry policy; backoff values are in seconds"""
    retries: int = 3
    backoff: float = 1.0
    max_backoff: float = 30.0
    retry_on: Optional[Callable[[BaseException], bool]] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RetryOptions":
        data = data or {}
        return cls(
            retries=int(data.get("retries", 3)),
            backoff=float(data.get("backoff", 1.0)),
            max_backoff=float(data.get("max_backoff", 30.0)),
        )


def _status_of(error: BaseException) -> Optional[int]:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def _is_transient_single(error: BaseException) -> bool:
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionResetError, ConnectionRefusedError)):
        return True
    if "timeout" in type(error).__name__.lower():
        return True
    if _status_of(error) in TRANSIENT_STATUS_CODES:
        return True
    message = str(error).lower()
    return any(fragment in message for fragment in TRANSIENT_MESSAGES)


def is_transient_error(error: BaseException) -> bool:
    """
    Classify an error as transient.

    Walks the __cause__/__context__ chain so wrapped transport errors
    (e.g. an httpx timeout raised inside a client error) still count.
    """
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if _is_transient_single(current):
            return True
        current = current.__cause__ or current.__context__
    return False


def _log_retry(retry_state) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Transient error on attempt {retry_state.attempt_number}, "
        f"retrying in {retry_state.next_action.sleep:.1f}s: {error}"
    )


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    retries: int = 3,
    backoff: float = 1.0,
    max_backoff: float = 30.0,
    retry_on: Optional[Callable[[BaseException], bool]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Await fn(), retrying transient failures.

    Args:
        fn: Zero-argument coroutine factory
        retries: Retries after the first attempt
        backoff: Base delay in seconds; attempt n waits backoff * 2**n
        max_backoff: Cap on a single delay
        retry_on: Predicate deciding whether an error is retried
            (default: is_transient_error)
        sleep: Sleep coroutine, replaceable in tests

    Returns:
        Result of the first successful call

    Raises:
        The last error once retries are exhausted, or the first
        non-retryable error.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception(retry_on or is_transient_error),
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=backoff, min=0, max=max_backoff),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(fn)


def with_retry(options: Optional[RetryOptions] = None):
    """Decorator form of retry_async for coroutine functions"""
    options = options or RetryOptions()

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await retry_async(
                lambda: func(*args, **kwargs),
                retries=options.retries,
                backoff=options.backoff,
                max_backoff=options.max_backoff,
                retry_on=options.retry_on,
            )
        return wrapper

    return decorator
