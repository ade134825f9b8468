"""Shared test fixtures."""

from typing import Any, Callable

import pytest

from lateinvoke import ExecutorConfig, configure
from lateinvoke.core import (
    CoercionDescriptor,
    clear_invoker_cache,
    clear_protocol_cache,
    reset_default_registry,
)
from lateinvoke.core.protocol import origin_class
from lateinvoke.runtime import Completion


def _reset_state() -> None:
    clear_protocol_cache()
    clear_invoker_cache()
    reset_default_registry()
    configure(ExecutorConfig())


# Shared awaitable definitions - a hand-rolled awaitable that completes on demand


class ManualAwaiter:
    """Awaiter completed explicitly by the test through ``finish``."""

    def __init__(self) -> None:
        self.done = False
        self.value = None
        self.error = None
        self.callbacks: list = []
        self.unsafe_callbacks: list = []

    @property
    def is_completed(self) -> bool:
        return self.done

    def on_completed(self, continuation: Callable[[], None]) -> None:
        if self.done:
            continuation()
        else:
            self.callbacks.append(continuation)

    def unsafe_on_completed(self, continuation: Callable[[], None]) -> None:
        if self.done:
            continuation()
        else:
            self.unsafe_callbacks.append(continuation)

    def get_result(self) -> str:
        if self.error is not None:
            raise self.error
        return self.value

    def finish(self, value=None, error=None) -> None:
        self.done = True
        self.value = value
        self.error = error
        callbacks = self.callbacks + self.unsafe_callbacks
        self.callbacks, self.unsafe_callbacks = [], []
        for callback in callbacks:
            callback()


class ManualAwaitable:
    """Awaitable whose result type is ``str``."""

    def __init__(self) -> None:
        self.awaiter = ManualAwaiter()
        self.get_awaiter_calls = 0

    def get_awaiter(self) -> ManualAwaiter:
        self.get_awaiter_calls += 1
        return self.awaiter

    def finish(self, value=None, error=None) -> None:
        self.awaiter.finish(value, error)


class BasicAwaiter:
    """Awaiter without the context-eliding registration."""

    def __init__(self) -> None:
        self.done = False
        self.callbacks: list = []
        self.registrations = 0

    @property
    def is_completed(self) -> bool:
        return self.done

    def on_completed(self, continuation: Callable[[], None]) -> None:
        self.registrations += 1
        self.callbacks.append(continuation)

    def get_result(self) -> int:
        return 42

    def finish(self) -> None:
        self.done = True
        for callback in self.callbacks:
            callback()


class BasicAwaitable:
    def __init__(self) -> None:
        self.awaiter = BasicAwaiter()

    def get_awaiter(self) -> BasicAwaiter:
        return self.awaiter


class LegacyPromise:
    """A foreign asynchronous type no built-in coercer knows about."""

    def __init__(self) -> None:
        self._callbacks: list = []
        self._settled = False
        self._value = None

    def then(self, callback) -> None:
        if self._settled:
            callback(self._value)
        else:
            self._callbacks.append(callback)

    def resolve(self, value) -> None:
        self._settled = True
        self._value = value
        for callback in self._callbacks:
            callback(value)


def promise_to_completion(promise: LegacyPromise) -> Completion[Any]:
    completion: Completion[Any] = Completion()
    promise.then(completion.set_result)
    return completion


class LegacyPromiseCoercer:
    """Adapter for LegacyPromise; counts how often it is asked."""

    name = "legacy"

    def __init__(self, result_type: Any = Completion[Any]):
        self.result_type = result_type
        self.calls = 0

    def try_coerce(self, tp):
        self.calls += 1
        if origin_class(tp) is not LegacyPromise:
            return None
        return CoercionDescriptor(
            name=self.name,
            source_type=tp,
            convert=promise_to_completion,
            result_type=self.result_type,
        )


@pytest.fixture(autouse=True)
def clean_state():
    """Ensure every test starts with empty caches and the default registry."""
    _reset_state()
    yield
    _reset_state()
