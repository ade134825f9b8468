"""Built-in coercers for foreign asynchronous types.

Each coercer converts one family of asynchronous values into a
:class:`Completion`, the native awaitable:

- ``concurrent.futures.Future[R]``
- Twisted ``Deferred[R]``, recognized by name so Twisted is never imported
- anything asyncio can schedule: coroutines, ``asyncio.Future``/``Task``
  and other ``Awaitable[R]`` types

Deferreds implement ``__await__`` too, so the Twisted coercer must be
registered ahead of the asyncio one.
"""

from __future__ import annotations

import asyncio
import collections.abc
import concurrent.futures
import logging
import sys
import threading
import typing
from dataclasses import dataclass
from typing import Any, Callable

from ..core.coercion import CoercionDescriptor
from ..core.protocol import origin_class
from .completion import Completion

__all__ = [
    "ConcurrentFutureCoercer",
    "DeferredCoercer",
    "AsyncioCoercer",
    "builtin_coercers",
]

logger = logging.getLogger(__name__)


def _single_arg(tp: Any) -> Any:
    args = typing.get_args(tp)
    return args[0] if len(args) == 1 else Any


# ---------------------------------------------------------------------------
# concurrent.futures
# ---------------------------------------------------------------------------


class ConcurrentFutureCoercer:
    """``concurrent.futures.Future[R]`` -> ``Completion[R]``."""

    name = "concurrent.futures"

    def try_coerce(self, tp: Any) -> CoercionDescriptor | None:
        cls = origin_class(tp)
        if cls is None or not issubclass(cls, concurrent.futures.Future):
            return None
        return CoercionDescriptor(
            name=self.name,
            source_type=tp,
            convert=Completion.from_future,
            result_type=Completion[_single_arg(tp)],
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ---------------------------------------------------------------------------
# Twisted
# ---------------------------------------------------------------------------

DEFERRED_MODULE = "twisted.internet.defer"
DEFERRED_NAME = "Deferred"


@dataclass(frozen=True)
class _DeferredOps:
    """Operations resolved from a module defining ``Deferred``."""

    deferred_type: type
    add_callbacks: Callable[..., Any]

    def to_completion(self, deferred: Any) -> Completion[Any]:
        completion: Completion[Any] = Completion()

        def on_result(result: Any) -> Any:
            completion.set_result(result)
            return result

        def on_failure(failure: Any) -> None:
            # Returning None marks the failure as handled on the Deferred;
            # it is re-raised from the Completion instead.
            completion.set_exception(getattr(failure, "value", failure))

        self.add_callbacks(deferred, on_result, on_failure)
        return completion


class DeferredCoercer:
    """Twisted ``Deferred[R]`` -> ``Completion[R]``.

    Twisted is never imported. A type is recognized when it or one of its
    bases carries Twisted's module and name, then that module is inspected
    once for the operations needed; a module that lacks them makes this
    coercer not apply.
    """

    name = "twisted"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._modules: dict[str, _DeferredOps | None] = {}

    def try_coerce(self, tp: Any) -> CoercionDescriptor | None:
        cls = origin_class(tp)
        if cls is None or not _derives_from_deferred(cls):
            return None

        ops = self._ops_for(DEFERRED_MODULE)
        if ops is None or not issubclass(cls, ops.deferred_type):
            return None
        return CoercionDescriptor(
            name=self.name,
            source_type=tp,
            convert=ops.to_completion,
            result_type=Completion[_single_arg(tp)],
        )

    def _ops_for(self, module_name: str) -> _DeferredOps | None:
        with self._lock:
            if module_name not in self._modules:
                self._modules[module_name] = _resolve_deferred_ops(module_name)
            return self._modules[module_name]

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _derives_from_deferred(cls: type) -> bool:
    """Whether ``cls`` is Twisted's Deferred or a subclass of it, by name."""
    return any(
        getattr(base, "__module__", None) == DEFERRED_MODULE
        and getattr(base, "__qualname__", None) == DEFERRED_NAME
        for base in cls.__mro__
    )


def _resolve_deferred_ops(module_name: str) -> _DeferredOps | None:
    module = sys.modules.get(module_name)
    deferred_type = getattr(module, DEFERRED_NAME, None)
    if not isinstance(deferred_type, type):
        logger.debug(f"{module_name} does not define a {DEFERRED_NAME} class")
        return None
    add_callbacks = getattr(deferred_type, "addCallbacks", None)
    if not callable(add_callbacks):
        logger.debug(f"{module_name}.{DEFERRED_NAME} has no addCallbacks()")
        return None
    logger.debug(f"Resolved Deferred operations from {module_name}")
    return _DeferredOps(deferred_type=deferred_type, add_callbacks=add_callbacks)


# ---------------------------------------------------------------------------
# asyncio
# ---------------------------------------------------------------------------


class AsyncioCoercer:
    """Coroutines and other asyncio awaitables -> ``Completion[R]``.

    Conversion schedules the awaitable on the running event loop, so the
    method must be invoked from inside one.
    """

    name = "asyncio"

    def try_coerce(self, tp: Any) -> CoercionDescriptor | None:
        cls = origin_class(tp)
        if cls is None or not issubclass(cls, collections.abc.Awaitable):
            return None
        return CoercionDescriptor(
            name=self.name,
            source_type=tp,
            convert=_schedule,
            result_type=Completion[_awaitable_result(tp, cls)],
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _awaitable_result(tp: Any, cls: type) -> Any:
    args = typing.get_args(tp)
    if issubclass(cls, collections.abc.Coroutine):
        return args[2] if len(args) == 3 else Any
    return args[0] if len(args) == 1 else Any


def _schedule(awaitable: Any) -> Completion[Any]:
    loop = asyncio.get_running_loop()
    return Completion.from_future(asyncio.ensure_future(awaitable, loop=loop))


def builtin_coercers() -> list[Any]:
    """Create the built-in coercers in their registration order."""
    return [ConcurrentFutureCoercer(), DeferredCoercer(), AsyncioCoercer()]
