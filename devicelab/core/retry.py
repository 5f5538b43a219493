"""Retry policy for outbound HTTP calls.

Server errors (5xx responses) and transport failures are retried with a
linearly increasing, capped delay. Client errors (4xx) are handed back to the
caller on the first attempt. Once the budget is spent the last response is
returned as-is, or the last exception is re-raised, so callers still see the
original failure.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    wait_incrementing,
)

from devicelab.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_EXCEPTIONS = (httpx.TransportError, ConnectionError)


def is_server_error(result: Any) -> bool:
    """Check whether a response-like object carries a 5xx status code."""
    status_code = getattr(result, "status_code", None)
    return isinstance(status_code, int) and status_code >= 500


def is_retryable_exception(exc: BaseException) -> bool:
    """Check whether an exception is a transient failure worth retrying."""
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, RETRYABLE_EXCEPTIONS)


def _surface_last_outcome(retry_state: RetryCallState) -> Any:
    # Returns the last response or re-raises the last exception unchanged.
    return retry_state.outcome.result()


async def call_with_retry(
    send: Callable[[], Awaitable[T]],
    *,
    times: int = 3,
    delay_unit: float = 2.0,
    max_delay: float = 10.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Invoke ``send`` and retry it on server errors or transport failures.

    Args:
        send: Zero-argument coroutine factory issuing one attempt
        times: Maximum number of retries (attempts = times + 1)
        delay_unit: Delay before retry n is n * delay_unit seconds
        max_delay: Upper bound for a single delay in seconds
        sleep: Awaitable sleep used between attempts

    Returns:
        The first non-retryable result, or the last result once the budget is spent

    Raises:
        Exception: The last exception raised by ``send`` if it is not retryable
            or the budget is spent. Cancellation is never retried.
    """
    retrying = AsyncRetrying(
        sleep=sleep,
        retry=retry_if_result(is_server_error) | retry_if_exception(is_retryable_exception),
        stop=stop_after_attempt(times + 1),
        wait=wait_incrementing(start=delay_unit, increment=delay_unit, max=max_delay),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        retry_error_callback=_surface_last_outcome,
        reraise=True,
    )
    return await retrying(send)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff shared by the remote API clients."""

    times: int = 3
    delay_unit: float = 2.0
    max_delay: float = 10.0
    sleep: Callable[[float], Awaitable[None]] = field(
        default=asyncio.sleep, compare=False, repr=False
    )

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            times=settings.RETRY_TIMES,
            delay_unit=settings.RETRY_DELAY_UNIT_SECONDS,
            max_delay=settings.RETRY_MAX_DELAY_SECONDS,
        )

    def delay_for(self, retry_number: int) -> float:
        """Delay in seconds before the given retry (1-based)."""
        return min(self.max_delay, retry_number * self.delay_unit)

    async def call(self, send: Callable[[], Awaitable[T]]) -> T:
        return await call_with_retry(
            send,
            times=self.times,
            delay_unit=self.delay_unit,
            max_delay=self.max_delay,
            sleep=self.sleep,
        )
