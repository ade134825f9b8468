"""
Minimal lateinvoke Demo
=======================

Demonstrates the core primitives:
1. Resolving a method once and executing it on many targets
2. Uniform async results from asyncio, thread pools and hand-rolled awaitables
3. Teaching the executor about a foreign asynchronous type with a coercer

Run with: ``python examples/minimal_demo.py``
"""

import asyncio
import concurrent.futures
import sys
from pathlib import Path
from typing import Any, Callable

sys.path.insert(0, str(Path(__file__).parent.parent))

from lateinvoke import (
    Completion,
    CoercionDescriptor,
    MethodExecutor,
    UnsupportedOperation,
    register_coercer,
    wait,
)

pool = concurrent.futures.ThreadPoolExecutor(max_workers=2)


# -----------------------------------------------------------------------------
# Services
# -----------------------------------------------------------------------------


class Inventory:
    """A service whose methods return all sorts of asynchronous values."""

    def __init__(self, stock: dict[str, int]):
        self.stock = stock

    def count(self, item: str) -> int:
        return self.stock.get(item, 0)

    def count_later(self, item: str) -> Completion[int]:
        completion: Completion[int] = Completion()
        pool.submit(lambda: completion.set_result(self.count(item)))
        return completion

    def count_in_pool(self, item: str) -> concurrent.futures.Future[int]:
        return pool.submit(self.count, item)

    async def restock(self, item: str, amount: int) -> int:
        await asyncio.sleep(0.01)
        self.stock[item] = self.count(item) + amount
        return self.stock[item]

    def count_with_callback(self, item: str) -> "CallbackResult":
        result = CallbackResult()
        pool.submit(lambda: result.fire(self.count(item)))
        return result


class CallbackResult:
    """A callback-style result type lateinvoke knows nothing about."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[[Any], None]] = []
        self._value: Any = None
        self._fired = False

    def subscribe(self, callback: Callable[[Any], None]) -> None:
        if self._fired:
            callback(self._value)
        else:
            self._callbacks.append(callback)

    def fire(self, value: Any) -> None:
        self._value, self._fired = value, True
        for callback in self._callbacks:
            callback(value)


class CallbackResultCoercer:
    name = "callback-result"

    def try_coerce(self, tp: Any) -> CoercionDescriptor | None:
        if tp is not CallbackResult:
            return None
        return CoercionDescriptor(
            name=self.name,
            source_type=tp,
            convert=self._convert,
            result_type=Completion[Any],
        )

    @staticmethod
    def _convert(result: CallbackResult) -> Completion[Any]:
        completion: Completion[Any] = Completion()
        result.subscribe(completion.set_result)
        return completion


# -----------------------------------------------------------------------------
# Demo 1: Late-bound execution
# -----------------------------------------------------------------------------


def execution_demo() -> None:
    print("\n" + "=" * 72)
    print("1) Resolve once, execute on many targets")
    print("=" * 72)

    count = MethodExecutor.for_method(Inventory, "count")
    for inventory in (Inventory({"apple": 3}), Inventory({"apple": 7})):
        print(f"count('apple') = {count.execute(inventory, 'apple')}")

    try:
        count.execute_async(Inventory({}), "apple")
    except UnsupportedOperation as e:
        print(f"execute_async rejected: {e}")


# -----------------------------------------------------------------------------
# Demo 2: Uniform async results
# -----------------------------------------------------------------------------


async def async_demo() -> None:
    print("\n" + "=" * 72)
    print("2) Uniform awaitables")
    print("=" * 72)

    inventory = Inventory({"pear": 2})
    for name, args in [
        ("count_later", ("pear",)),
        ("count_in_pool", ("pear",)),
        ("restock", ("pear", 5)),
    ]:
        executor = MethodExecutor.for_method(Inventory, name)
        result = await executor.execute_async(inventory, *args)
        coercion = executor.invoker.coercion
        via = coercion.name if coercion else "native"
        result_type = executor.async_result_type.__name__
        print(f"{name:<16} -> {result} (result type {result_type}, via {via})")


# -----------------------------------------------------------------------------
# Demo 3: Custom coercion
# -----------------------------------------------------------------------------


def coercion_demo() -> None:
    print("\n" + "=" * 72)
    print("3) Registering a coercer for a foreign type")
    print("=" * 72)

    register_coercer(CallbackResultCoercer())
    executor = MethodExecutor.for_method(Inventory, "count_with_callback")
    awaitable = executor.execute_async(Inventory({"plum": 11}), "plum")

    waiter = awaitable.get_waiter()
    waiter.on_complete(lambda: print(f"continuation saw {waiter.get_result()}"))
    print(f"wait() returned {wait(awaitable, timeout=5)}")


# -----------------------------------------------------------------------------
# Entrypoint
# -----------------------------------------------------------------------------


if __name__ == "__main__":
    execution_demo()
    asyncio.run(async_demo())
    coercion_demo()
    pool.shutdown()
