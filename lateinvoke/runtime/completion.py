"""Completion - thread-safe completion source satisfying the awaitable protocol.

A Completion is a value that will be set exactly once, from any thread. It is
the native awaitable of lateinvoke: built-in coercers convert foreign futures
into Completions, and methods may return one directly.

Example:
    class Service:
        def fetch(self, key: int) -> Completion[str]:
            completion = Completion()
            pool.submit(lambda: completion.set_result(lookup(key)))
            return completion
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import logging
import threading
from concurrent.futures import InvalidStateError
from typing import Any, Callable, Generic, TypeVar

from .utils import resolve_wakeup

__all__ = ["Completion", "CompletionAwaiter"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Completion(Generic[T]):
    """A result that becomes available later.

    Callbacks run exactly once, on the thread that completes the Completion,
    or inline when registered after completion.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._result: Any = None
        self._exception: BaseException | None = None
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def completed(cls, value: T) -> Completion[T]:
        """Create a Completion that already holds ``value``."""
        completion: Completion[T] = cls()
        completion.set_result(value)
        return completion

    @classmethod
    def failed(cls, exception: BaseException) -> Completion[Any]:
        completion: Completion[Any] = cls()
        completion.set_exception(exception)
        return completion

    @classmethod
    def from_future(cls, future: Any) -> Completion[Any]:
        """Mirror an ``asyncio`` or ``concurrent.futures`` future.

        The Completion finishes when the future does, with its result or its
        exception (cancellation surfaces as the future's CancelledError).
        """
        completion: Completion[Any] = cls()

        def transfer(done: Any) -> None:
            try:
                result = done.result()
            except BaseException as e:
                completion.set_exception(e)
            else:
                completion.set_result(result)

        future.add_done_callback(transfer)
        return completion

    def set_result(self, value: T) -> None:
        self._complete(value, None)

    def set_exception(self, exception: BaseException) -> None:
        self._complete(None, exception)

    def _complete(self, value: Any, exception: BaseException | None) -> None:
        with self._lock:
            if self._done.is_set():
                raise InvalidStateError(f"{self!r} is already complete")
            self._result = value
            self._exception = exception
            callbacks, self._callbacks = self._callbacks, []
            self._done.set()

        for callback in callbacks:
            self._run_callback(callback)

    def _run_callback(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception(f"Exception calling completion callback for {self!r}")

    def done(self) -> bool:
        return self._done.is_set()

    def result(self, timeout: float | None = None) -> T:
        """Block until complete and return the result.

        Raises:
            TimeoutError: If ``timeout`` elapses first
            Exception: Whatever exception the Completion was failed with
        """
        if not self._done.wait(timeout):
            raise TimeoutError(f"{self!r} did not complete within {timeout}s")
        if self._exception is not None:
            raise self._exception
        return self._result

    def exception(self, timeout: float | None = None) -> BaseException | None:
        if not self._done.wait(timeout):
            raise TimeoutError(f"{self!r} did not complete within {timeout}s")
        return self._exception

    def add_done_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback()`` on completion, or now if already complete."""
        with self._lock:
            if not self._done.is_set():
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    def get_awaiter(self) -> CompletionAwaiter[T]:
        return CompletionAwaiter(self)

    def __await__(self):
        """Allow ``await completion`` from asyncio code."""
        if not self.done():
            loop = asyncio.get_running_loop()
            wakeup = loop.create_future()
            self.add_done_callback(
                lambda: loop.call_soon_threadsafe(resolve_wakeup, wakeup)
            )
            yield from wakeup
        return self.result()

    def __repr__(self) -> str:
        if not self._done.is_set():
            return "Completion(pending)"
        if self._exception is not None:
            return f"Completion(failed, error={type(self._exception).__name__})"
        return f"Completion(completed, result={repr(self._result)[:50]})"


class CompletionAwaiter(Generic[T]):
    """Awaiter for a Completion.

    ``on_completed`` runs the continuation inside a copy of the registering
    context (``contextvars``); ``unsafe_on_completed`` runs it in whatever
    context the completing thread has.
    """

    __slots__ = ("_completion",)

    def __init__(self, completion: Completion[T]):
        self._completion = completion

    @property
    def is_completed(self) -> bool:
        return self._completion.done()

    def get_result(self) -> T:
        return self._completion.result()

    def on_completed(self, continuation: Callable[[], None]) -> None:
        context = contextvars.copy_context()
        self._completion.add_done_callback(functools.partial(context.run, continuation))

    def unsafe_on_completed(self, continuation: Callable[[], None]) -> None:
        self._completion.add_done_callback(continuation)
