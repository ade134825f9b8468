"""Runtime support: the native awaitable and built-in coercers."""

from .completion import Completion, CompletionAwaiter
from .utils import wait
from .adapters import (
    AsyncioCoercer,
    ConcurrentFutureCoercer,
    DeferredCoercer,
    builtin_coercers,
)

__all__ = [
    "Completion",
    "CompletionAwaiter",
    "wait",
    "AsyncioCoercer",
    "ConcurrentFutureCoercer",
    "DeferredCoercer",
    "builtin_coercers",
]
