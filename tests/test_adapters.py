"""Tests for the built-in coercers."""

import asyncio
import concurrent.futures

import pytest

from lateinvoke import NO_VALUE, MethodExecutor, wait
from lateinvoke.runtime import (
    AsyncioCoercer,
    Completion,
    ConcurrentFutureCoercer,
    DeferredCoercer,
)

pool = concurrent.futures.ThreadPoolExecutor(max_workers=2)


class Worker:
    async def double(self, value: int) -> int:
        await asyncio.sleep(0)
        return value * 2

    async def ping(self) -> None:
        await asyncio.sleep(0)

    async def explode(self) -> int:
        raise ValueError("exploded")

    def spawn(self, value: int) -> asyncio.Task[int]:
        return asyncio.ensure_future(self.double(value))

    def submit(self, value: int) -> concurrent.futures.Future[int]:
        return pool.submit(lambda: value + 1)


# =============================================================================
# asyncio
# =============================================================================


@pytest.mark.asyncio
async def test_coroutine_method_is_awaitable():
    executor = MethodExecutor.for_method(Worker, "double")

    awaitable = executor.execute_async(Worker(), 21)

    assert executor.is_method_async
    assert executor.invoker.coercion.name == "asyncio"
    assert executor.async_result_type is int
    assert isinstance(awaitable.value, Completion)
    assert await awaitable == 42


@pytest.mark.asyncio
async def test_void_coroutine_yields_no_value():
    awaitable = MethodExecutor.for_method(Worker, "ping").execute_async(Worker())

    assert await awaitable is NO_VALUE


@pytest.mark.asyncio
async def test_coroutine_failure_is_reraised():
    awaitable = MethodExecutor.for_method(Worker, "explode").execute_async(Worker())

    with pytest.raises(ValueError, match="exploded"):
        await awaitable


@pytest.mark.asyncio
async def test_task_result_type():
    executor = MethodExecutor.for_method(Worker, "spawn")

    awaitable = executor.execute_async(Worker(), 4)

    assert executor.async_result_type is int
    assert await awaitable == 8


def test_asyncio_coercer_ignores_non_awaitables():
    assert AsyncioCoercer().try_coerce(int) is None
    assert AsyncioCoercer().try_coerce(list[int]) is None


# =============================================================================
# concurrent.futures
# =============================================================================


def test_concurrent_future_method():
    executor = MethodExecutor.for_method(Worker, "submit")

    awaitable = executor.execute_async(Worker(), 1)

    assert executor.invoker.coercion.name == "concurrent.futures"
    assert executor.async_result_type is int
    assert wait(awaitable, timeout=5) == 2


def test_concurrent_future_coercer_result_type():
    coercion = ConcurrentFutureCoercer().try_coerce(concurrent.futures.Future[str])

    assert coercion.result_type == Completion[str]
    assert ConcurrentFutureCoercer().try_coerce(Completion[str]) is None


# =============================================================================
# Twisted
# =============================================================================


def test_deferred_coercer_requires_the_real_module():
    lookalike = type("Deferred", (), {"__module__": "twisted.internet.defer"})
    local = type("Deferred", (), {})

    assert DeferredCoercer().try_coerce(lookalike) is None
    assert DeferredCoercer().try_coerce(local) is None


def test_deferred_method():
    defer = pytest.importorskip("twisted.internet.defer")

    class Client:
        def __init__(self) -> None:
            self.pending = defer.Deferred()

        def fetch(self) -> defer.Deferred[str]:
            return self.pending

    client = Client()
    executor = MethodExecutor.for_method(Client, "fetch")

    waiter = executor.execute_async(client).get_waiter()

    assert executor.invoker.coercion.name == "twisted"
    assert executor.async_result_type is str
    assert not waiter.is_complete()
    client.pending.callback("fetched")
    assert waiter.is_complete()
    assert waiter.get_result() == "fetched"


def test_deferred_failure():
    defer = pytest.importorskip("twisted.internet.defer")

    class Client:
        def fetch(self) -> defer.Deferred[int]:
            return defer.fail(KeyError("gone"))

    waiter = MethodExecutor.for_method(Client, "fetch").execute_async(Client()).get_waiter()

    assert waiter.is_complete()
    with pytest.raises(KeyError):
        waiter.get_result()


def test_deferred_subclass_is_coerced_as_deferred():
    defer = pytest.importorskip("twisted.internet.defer")

    class CachedDeferred(defer.Deferred):
        pass

    class Client:
        def __init__(self) -> None:
            self.pending = CachedDeferred()

        def fetch(self) -> CachedDeferred:
            return self.pending

    client = Client()
    executor = MethodExecutor.for_method(Client, "fetch")

    waiter = executor.execute_async(client).get_waiter()

    assert executor.invoker.coercion.name == "twisted"
    client.pending.callback("cached")
    assert waiter.get_result() == "cached"
