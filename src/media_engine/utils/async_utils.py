"""Async utilities for running coroutines in sync contexts."""

import asyncio
from collections.abc import Awaitable, Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in a sync context.

    Reuses the current event loop if available, otherwise creates a new one.
    The loop is NOT closed after use because httpx clients created inside a
    pipeline run may still hold transports bound to it when the next job is
    executed by the same Celery worker process.

    Args:
        coro: The coroutine to execute.

    Returns:
        The result of the coroutine.
    """
    try:
        loop = asyncio.get_event_loop()
        if loop.is_closed():
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


async def gather_settled(*aws: Awaitable[T]) -> list[T]:
    """Await every awaitable, then re-raise the first exception, if any.

    Unlike a bare ``asyncio.gather``, no sibling is left running when one of
    them fails: all of them settle before the error propagates.

    Args:
        *aws: Awaitables to run concurrently.

    Returns:
        Results in input order.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)
