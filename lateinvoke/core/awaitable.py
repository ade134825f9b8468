"""UniformAwaitable - protocol-erased wrapper around an awaitable result.

The invoker returns a UniformAwaitable for every async call, whatever concrete
awaitable the method produced. Callers drive it with their own concurrency
primitives through the UniformWaiter, or simply ``await`` it from asyncio.

Continuations registered through a waiter may run on any thread, whichever
one completes the underlying operation. No synchronization is done on the
caller's behalf.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable

from ..errors import ProtocolViolation
from ..runtime.utils import resolve_wakeup
from .protocol import ProtocolDescriptor

__all__ = ["UniformAwaitable", "UniformWaiter"]

# Guards first waiter acquisition. Reentrant: get_awaiter may acquire others.
_waiter_lock = threading.RLock()


class UniformWaiter:
    """Waiter view over a concrete awaiter, through cached protocol hooks."""

    __slots__ = ("_awaiter", "_protocol")

    def __init__(self, awaiter: Any, protocol: ProtocolDescriptor):
        self._awaiter = awaiter
        self._protocol = protocol

    @property
    def awaiter(self) -> Any:
        """The concrete awaiter this waiter delegates to."""
        return self._awaiter

    def is_complete(self) -> bool:
        completed = self._protocol.is_completed(self._awaiter)
        if not isinstance(completed, bool):
            raise ProtocolViolation(
                f"{type(self._awaiter).__qualname__}.is_completed returned "
                f"{type(completed).__name__}, expected bool"
            )
        return completed

    def get_result(self) -> Any:
        """Return the result; ``NO_VALUE`` when the result type is ``None``.

        Raises whatever the underlying operation raised.
        """
        return self._protocol.get_result(self._awaiter)

    def on_complete(self, continuation: Callable[[], None]) -> None:
        """Run ``continuation`` once the operation completes.

        Uses the context-preserving registration of the underlying awaiter.
        """
        self._protocol.on_completed(self._awaiter, continuation)

    def on_complete_fast(self, continuation: Callable[[], None]) -> None:
        """Like :meth:`on_complete`, but without preserving the current context.

        Falls back to the context-preserving registration when the underlying
        awaiter has no context-eliding variant.
        """
        hook = self._protocol.unsafe_on_completed or self._protocol.on_completed
        hook(self._awaiter, continuation)

    def __repr__(self) -> str:
        return f"UniformWaiter({type(self._awaiter).__qualname__})"


class UniformAwaitable:
    """Result of an async invocation: a concrete value plus its protocol hooks.

    Produced once per call and not meant to be reused across calls.

    Example:
        awaitable = executor.execute_async(service, 5)
        waiter = awaitable.get_waiter()
        waiter.on_complete(lambda: print(waiter.get_result()))

        # or, inside a coroutine
        result = await executor.execute_async(service, 5)
    """

    __slots__ = ("_value", "_protocol", "_waiter")

    def __init__(self, value: Any, protocol: ProtocolDescriptor):
        self._value = value
        self._protocol = protocol
        self._waiter: UniformWaiter | None = None

    @property
    def value(self) -> Any:
        """The concrete (possibly coerced) awaitable value."""
        return self._value

    @property
    def protocol(self) -> ProtocolDescriptor:
        return self._protocol

    @property
    def result_type(self) -> Any:
        return self._protocol.result_type

    def get_waiter(self) -> UniformWaiter:
        """Return the waiter, calling the underlying ``get_awaiter`` only once.

        Safe to call from several threads; only the first acquisition takes
        a lock.
        """
        waiter = self._waiter
        if waiter is None:
            with _waiter_lock:
                waiter = self._waiter
                if waiter is None:
                    awaiter = self._protocol.get_awaiter(self._value)
                    waiter = UniformWaiter(awaiter, self._protocol)
                    self._waiter = waiter
        return waiter

    def __await__(self):
        """Allow ``await awaitable`` from asyncio code."""
        waiter = self.get_waiter()
        if not waiter.is_complete():
            loop = asyncio.get_running_loop()
            wakeup = loop.create_future()
            waiter.on_complete_fast(
                lambda: loop.call_soon_threadsafe(resolve_wakeup, wakeup)
            )
            yield from wakeup
        return waiter.get_result()

    def __repr__(self) -> str:
        return f"UniformAwaitable({type(self._value).__qualname__})"
