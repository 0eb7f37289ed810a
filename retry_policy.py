# retry_policy.py
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from errors import FatalError, StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retriable(exc: BaseException) -> bool:
    """Everything but fatal errors: navigation failures and playwright timeouts count as transient."""
    return isinstance(exc, Exception) and not isinstance(exc, FatalError)


def is_store_error(exc: BaseException) -> bool:
    return isinstance(exc, StoreUnavailable)


def _log_attempt(label: str):
    def before_sleep(retry_state):
        exc = retry_state.outcome.exception()
        logger.warning(
            "%s: attempt %d failed (%r), retrying in %.1fs",
            label, retry_state.attempt_number, exc, retry_state.next_action.sleep,
        )
    return before_sleep


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 2.0,
    retriable: Callable[[BaseException], bool] = is_retriable,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run `operation` up to `max_attempts` times, one after another.

    The delay before attempt n+1 is `base_delay * n`. Errors the predicate
    rejects propagate at once; on exhaustion the last error is re-raised as is.
    `operation` is called afresh for every attempt, so anything it acquires
    with `async with` is released before the next one starts.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_incrementing(start=base_delay, increment=base_delay),
        retry=retry_if_exception(retriable),
        before_sleep=_log_attempt(label),
        reraise=True,
        sleep=sleep,
    )
    async for attempt in retrying:
        with attempt:
            result = await operation()
    return result
