"""
Bounded time-budget retry for auxiliary tooling (course registration helpers).

Runtime workflows never retry; only operator scripts use this, and only for
transient RPC failures.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from core.exceptions import ChainRpcError
from membership_engine.config.constants import DEFAULT_RETRY_BUDGET_MS, DEFAULT_RETRY_DELAY_MS

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retries(
        fn: Callable[[], Awaitable[T]],
        max_ms: int = DEFAULT_RETRY_BUDGET_MS,
        delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        retry_on: Tuple[Type[BaseException], ...] = (ChainRpcError,)
) -> T:
    """
    Run fn until it succeeds or the time budget is spent.

    Args:
        fn: Zero-argument coroutine factory
        max_ms: Total time budget in milliseconds
        delay_ms: Fixed delay between attempts in milliseconds
        retry_on: Exception types considered transient; anything else propagates at once

    Returns:
        Result of the first successful attempt

    Raises:
        The last transient error once the budget is exhausted
    """
    deadline = time.monotonic() + max_ms / 1000
    attempt = 0
    last_error = None

    while True:
        attempt += 1
        try:
            return await fn()
        except retry_on as e:
            last_error = e
            remaining = deadline - time.monotonic()
            logger.warning(f"Attempt {attempt} failed: {e} ({max(0.0, remaining):.1f}s budget left)")
            if remaining <= 0:
                break
            await asyncio.sleep(min(delay_ms / 1000, remaining))
            if time.monotonic() >= deadline:
                break

    logger.error(f"Giving up after {attempt} attempts")
    raise last_error
