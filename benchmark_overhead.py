"""Benchmark to measure late-bound invocation overhead.

Compares three ways of calling the same method many times:
1. A plain bound-method call (baseline)
2. ``getattr`` lookup on every call (the naive late-bound approach)
3. A MethodExecutor backed by a cached invoker, with and without argument checks
"""

import time

from lateinvoke import Completion, MethodExecutor, wait


class Counter:
    def add(self, a: int, b: int) -> int:
        return a + b

    def add_later(self, a: int, b: int) -> Completion[int]:
        return Completion.completed(a + b)


def timed(label: str, iterations: int, call) -> float:
    start = time.perf_counter()
    for i in range(iterations):
        call(i)
    duration = time.perf_counter() - start

    print(f"✓ {iterations:,} iterations: {label}")
    print(f"  Total time: {duration:.4f}s")
    print(f"  Avg per call: {duration / iterations * 1_000_000:.3f}µs")
    print()
    return duration


def benchmark_overhead():
    """Benchmark executor overhead against direct calls."""
    print("=" * 60)
    print("INVOCATION OVERHEAD BENCHMARK")
    print("=" * 60)
    print()

    counter = Counter()
    checked = MethodExecutor.for_method(Counter, "add")
    unchecked = MethodExecutor.for_method(
        Counter, "add", config={"check_argument_types": False}
    )
    later = MethodExecutor.for_method(Counter, "add_later")

    # Warmup builds and caches the invokers
    for i in range(100):
        checked.execute(counter, i, 1)
        unchecked.execute(counter, i, 1)
        wait(later.execute_async(counter, i, 1))

    iterations = 200_000
    baseline = timed("bound method", iterations, lambda i: counter.add(i, 1))
    lookup = timed("getattr per call", iterations, lambda i: getattr(counter, "add")(i, 1))
    fast = timed(
        "executor (no type checks)", iterations, lambda i: unchecked.execute(counter, i, 1)
    )
    safe = timed("executor (type checks)", iterations, lambda i: checked.execute(counter, i, 1))
    uniform = timed(
        "executor async + wait", iterations, lambda i: wait(later.execute_async(counter, i, 1))
    )

    print("SUMMARY")
    print("-" * 60)
    print(f"getattr overhead:              {lookup / baseline:.2f}x")
    print(f"Executor overhead (unchecked): {fast / baseline:.2f}x")
    print(f"Executor overhead (checked):   {safe / baseline:.2f}x")
    print(f"Async + wait overhead:         {uniform / baseline:.2f}x")
    print()


if __name__ == "__main__":
    benchmark_overhead()
