"""End-to-end tests for MethodExecutor."""

import asyncio
import threading
from typing import Any, Callable

import pytest

from conftest import (
    BasicAwaitable,
    LegacyPromise,
    LegacyPromiseCoercer,
    ManualAwaitable,
)
from lateinvoke import (
    NO_VALUE,
    CoercionRegistry,
    InvalidArgument,
    MethodDescriptor,
    MethodExecutor,
    ProtocolViolation,
    UnsupportedOperation,
    execute,
    execute_async,
    register_coercer,
    wait,
)
from lateinvoke.runtime import Completion


class Service:
    def __init__(self) -> None:
        self.issued: list = []

    def fetch(self, key: int) -> ManualAwaitable:
        awaitable = ManualAwaitable()
        self.issued.append((key, awaitable))
        return awaitable

    def legacy(self) -> LegacyPromise:
        promise = LegacyPromise()
        self.issued.append(promise)
        return promise

    def native(self) -> Completion[Any]:
        completion: Completion[Any] = Completion()
        self.issued.append(completion)
        return completion

    def basic(self) -> BasicAwaitable:
        awaitable = BasicAwaitable()
        self.issued.append(awaitable)
        return awaitable

    def count(self, items: list) -> int:
        return len(items)

    def reset(self) -> None:
        self.issued.clear()

    def broken(self, key: int) -> ManualAwaitable:
        raise KeyError(key)

    async def compute(self, value: int) -> int:
        return value * 2


class LyingAwaiter:
    @property
    def is_completed(self) -> bool:
        return 1

    def on_completed(self, continuation: Callable[[], None]) -> None:
        continuation()

    def get_result(self) -> int:
        return 0


class LyingAwaitable:
    def get_awaiter(self) -> LyingAwaiter:
        return LyingAwaiter()


class Lying:
    def start(self) -> LyingAwaitable:
        return LyingAwaitable()


# =============================================================================
# Awaitable results
# =============================================================================


def test_hand_rolled_awaitable_result():
    service = Service()
    executor = MethodExecutor.for_method(Service, "fetch")

    awaitable = executor.execute_async(service, 5)
    waiter = awaitable.get_waiter()

    assert executor.is_method_async
    assert executor.async_result_type is str
    assert waiter.is_complete() is False

    key, concrete = service.issued[0]
    concrete.finish("ok")

    assert key == 5
    assert waiter.is_complete() is True
    assert waiter.get_result() == "ok"
    assert awaitable.get_waiter() is waiter
    assert concrete.get_awaiter_calls == 1


def test_continuation_runs_once_on_completion():
    service = Service()
    executor = MethodExecutor.for_method(Service, "fetch")
    waiter = executor.execute_async(service, 1).get_waiter()
    results = []

    waiter.on_complete(lambda: results.append(waiter.get_result()))
    service.issued[0][1].finish("done")

    assert results == ["done"]


def test_failed_operation_reraises_from_get_result():
    service = Service()
    executor = MethodExecutor.for_method(Service, "fetch")
    waiter = executor.execute_async(service, 1).get_waiter()

    service.issued[0][1].finish(error=ValueError("lost"))

    assert waiter.is_complete()
    with pytest.raises(ValueError, match="lost"):
        waiter.get_result()


def test_execute_returns_the_concrete_awaitable():
    service = Service()

    raw = MethodExecutor.for_method(Service, "fetch").execute(service, 3)

    assert isinstance(raw, ManualAwaitable)
    assert raw.get_awaiter_calls == 0


def test_fast_registration_falls_back_to_basic_hook():
    service = Service()
    waiter = MethodExecutor.for_method(Service, "basic").execute_async(service).get_waiter()
    calls = []

    waiter.on_complete_fast(lambda: calls.append("done"))
    concrete = service.issued[0]
    concrete.awaiter.finish()

    assert concrete.awaiter.registrations == 1
    assert calls == ["done"]
    assert waiter.get_result() == 42


def test_non_boolean_completion_flag_is_a_protocol_violation():
    waiter = MethodExecutor.for_method(Lying, "start").execute_async(Lying()).get_waiter()

    with pytest.raises(ProtocolViolation, match="expected bool"):
        waiter.is_complete()


# =============================================================================
# Non-awaitable and foreign results
# =============================================================================


def test_unregistered_foreign_type_is_unsupported_for_async():
    service = Service()
    executor = MethodExecutor.for_method(Service, "legacy")

    with pytest.raises(UnsupportedOperation, match="Service.legacy"):
        executor.execute_async(service)

    assert not executor.is_method_async
    assert executor.async_result_type is None
    assert isinstance(executor.execute(service), LegacyPromise)


def test_plain_return_type_is_unsupported_for_async():
    executor = MethodExecutor.for_method(Service, "count")

    assert executor.execute(Service(), [1, 2]) == 2
    with pytest.raises(UnsupportedOperation, match="Use execute"):
        executor.execute_async(Service(), [1, 2])


def test_void_method_returns_no_value():
    assert MethodExecutor.for_method(Service, "reset").execute(Service()) is NO_VALUE


def test_coerced_result_matches_native_completion():
    register_coercer(LegacyPromiseCoercer())
    service = Service()

    coerced = MethodExecutor.for_method(Service, "legacy").execute_async(service)
    native = MethodExecutor.for_method(Service, "native").execute_async(service)
    promise, completion = service.issued

    for awaitable in (coerced, native):
        assert awaitable.get_waiter().is_complete() is False

    promise.resolve("value")
    completion.set_result("value")

    for awaitable in (coerced, native):
        waiter = awaitable.get_waiter()
        assert waiter.is_complete() is True
        assert waiter.get_result() == "value"


def test_method_exceptions_propagate_unchanged():
    executor = MethodExecutor.for_method(Service, "broken")

    with pytest.raises(KeyError):
        executor.execute(Service(), 1)
    with pytest.raises(KeyError):
        executor.execute_async(Service(), 1)


def test_invalid_arguments_are_rejected_before_the_call():
    service = Service()
    executor = MethodExecutor.for_method(Service, "fetch")

    with pytest.raises(InvalidArgument):
        executor.execute_async(service, "five")
    assert service.issued == []


def test_argument_checks_follow_executor_config():
    executor = MethodExecutor.for_method(
        Service, "count", config={"check_argument_types": False}
    )

    assert executor.execute(Service(), "abc") == 3


def test_async_def_is_unsupported_without_asyncio_coercer():
    executor = MethodExecutor.for_method(Service, "compute", registry=CoercionRegistry())

    assert not executor.is_method_async


# =============================================================================
# Executor surface
# =============================================================================


def test_descriptor_properties():
    executor = MethodExecutor.for_method(Service, "fetch", parameter_defaults=[7])

    assert executor.descriptor == MethodDescriptor.resolve(Service, "fetch")
    assert executor.method_return_type is ManualAwaitable
    assert executor.get_default_value_for_parameter(0) == 7
    assert repr(executor) == "MethodExecutor(Service.fetch)"


def test_executors_share_cached_invokers():
    first = MethodExecutor.for_method(Service, "fetch")
    second = MethodExecutor.create(MethodDescriptor.resolve(Service, "fetch"))

    assert first.invoker is second.invoker


def test_module_level_execute():
    service = Service()
    descriptor = MethodDescriptor.resolve(Service, "fetch")

    assert isinstance(execute(descriptor, service, 1), ManualAwaitable)
    waiter = execute_async(descriptor, service, 2).get_waiter()
    service.issued[1][1].finish("two")
    assert waiter.get_result() == "two"

    with pytest.raises(UnsupportedOperation):
        execute_async(MethodDescriptor.resolve(Service, "count"), service, [])


def test_wait_blocks_until_completion():
    service = Service()
    awaitable = MethodExecutor.for_method(Service, "native").execute_async(service)
    timer = threading.Timer(0.01, service.issued[0].set_result, args=("late",))
    timer.start()

    assert wait(awaitable, timeout=5) == "late"


def test_wait_times_out():
    awaitable = MethodExecutor.for_method(Service, "native").execute_async(Service())

    with pytest.raises(TimeoutError):
        wait(awaitable, timeout=0.01)


@pytest.mark.asyncio
async def test_await_uniform_awaitable():
    service = Service()
    awaitable = MethodExecutor.for_method(Service, "fetch").execute_async(service, 9)
    asyncio.get_running_loop().call_soon(service.issued[0][1].finish, "nine")

    assert await awaitable == "nine"


@pytest.mark.asyncio
async def test_await_completed_uniform_awaitable():
    service = Service()
    awaitable = MethodExecutor.for_method(Service, "native").execute_async(service)
    service.issued[0].set_result(1)

    assert await awaitable == 1
