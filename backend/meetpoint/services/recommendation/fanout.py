"""Bounded parallel fan-out for provider calls with a shared deadline."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

logger = logging.getLogger(__name__)


class DeadlineExceeded(Exception):
    """Placeholder result for a call that was still running at the deadline."""


def deadline_after(seconds: float | None) -> float | None:
    """Absolute event-loop time `seconds` from now (None = no deadline)."""
    if seconds is None:
        return None
    return asyncio.get_running_loop().time() + seconds


async def gather_bounded(
    calls: Sequence[Callable[[], Awaitable[Any]]],
    concurrency: int = 8,
    deadline: float | None = None,
) -> list[Any]:
    """
    Run zero-arg coroutine factories with at most `concurrency` in flight.

    Returns one entry per call, in call order: the result, the exception it
    raised, or a DeadlineExceeded instance if it had not finished by
    `deadline` (absolute loop time). Calls still running at the deadline
    are cancelled.
    """
    if not calls:
        return []

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _run(call: Callable[[], Awaitable[Any]]) -> Any:
        async with semaphore:
            return await call()

    tasks = [asyncio.ensure_future(_run(call)) for call in calls]

    timeout = None
    if deadline is not None:
        timeout = max(0.0, deadline - asyncio.get_running_loop().time())

    _, pending = await asyncio.wait(tasks, timeout=timeout)
    if pending:
        logger.warning(f"Deadline reached with {len(pending)}/{len(tasks)} provider calls unfinished")
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    results: list[Any] = []
    for task in tasks:
        if task in pending or task.cancelled():
            results.append(DeadlineExceeded())
        elif task.exception() is not None:
            results.append(task.exception())
        else:
            results.append(task.result())
    return results
