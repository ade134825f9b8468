"""Runtime helpers shared by awaitables and completions."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..core.awaitable import UniformAwaitable

__all__ = ["resolve_wakeup", "wait"]


def resolve_wakeup(wakeup: asyncio.Future) -> None:
    """Wake a coroutine parked on ``wakeup``; must run on the future's loop."""
    if not wakeup.done():
        wakeup.set_result(None)


def wait(awaitable: UniformAwaitable, timeout: float | None = None) -> Any:
    """Block the calling thread until ``awaitable`` completes; return its result.

    Raises:
        TimeoutError: If ``timeout`` elapses first
        Exception: Whatever the underlying operation raised
    """
    waiter = awaitable.get_waiter()
    if not waiter.is_complete():
        finished = threading.Event()
        waiter.on_complete_fast(finished.set)
        if not finished.wait(timeout):
            raise TimeoutError(f"{awaitable!r} did not complete within {timeout}s")
    return waiter.get_result()
