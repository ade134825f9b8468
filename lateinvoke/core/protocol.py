"""Awaitable protocol detection.

A type is awaitable when its class structurally provides:

1. exactly one zero-argument ``get_awaiter()`` method with an annotated
   return type (the awaiter type),
2. on the awaiter, an ``is_completed`` property annotated ``-> bool``,
3. on the awaiter, an ``on_completed(continuation)`` method returning nothing,
4. on the awaiter, a zero-argument ``get_result()`` method whose return hint
   is the result type (``None`` meaning no value),
5. optionally, ``unsafe_on_completed(continuation)`` with the signature of
   step 3, used as the context-eliding fast path.

Member names match case-insensitively and ignoring underscores, so
``GetAwaiter`` and ``get_awaiter`` are equivalent. Detection runs once per
type; the outcome is cached and downstream code only calls the captured
hooks.
"""

from __future__ import annotations

import inspect
import logging
import operator
import typing
from dataclasses import dataclass
from typing import Any, Callable

from .descriptor import NO_VALUE, NoneType

__all__ = [
    "ProtocolDescriptor",
    "detect",
    "is_awaitable_type",
    "clear_protocol_cache",
    "get_protocol_cache_info",
    "origin_class",
]

logger = logging.getLogger(__name__)

_GET_AWAITER = "getawaiter"
_IS_COMPLETED = "iscompleted"
_ON_COMPLETED = "oncompleted"
_UNSAFE_ON_COMPLETED = "unsafeoncompleted"
_GET_RESULT = "getresult"


@dataclass(frozen=True)
class ProtocolDescriptor:
    """Resolved awaitable hooks for one awaitable type.

    Safe to share between every invoker whose (possibly coerced) return type
    is ``awaitable_type``.

    Attributes:
        awaitable_type: The awaitable type this descriptor was detected for
        awaiter_type: Declared return type of ``get_awaiter()``
        result_type: Declared result type; ``NoneType`` when there is no value
        get_awaiter: ``(awaitable) -> awaiter``
        is_completed: ``(awaiter) -> bool``
        get_result: ``(awaiter) -> value``; returns ``NO_VALUE`` for void results
        on_completed: ``(awaiter, continuation) -> None``
        unsafe_on_completed: Context-eliding variant of ``on_completed``, or None
    """

    awaitable_type: Any
    awaiter_type: Any
    result_type: Any
    get_awaiter: Callable[[Any], Any]
    is_completed: Callable[[Any], bool]
    get_result: Callable[[Any], Any]
    on_completed: Callable[[Any, Callable[[], None]], None]
    unsafe_on_completed: Callable[[Any, Callable[[], None]], None] | None = None

    @property
    def returns_value(self) -> bool:
        return self.result_type is not NoneType

    @property
    def supports_unsafe_completion(self) -> bool:
        return self.unsafe_on_completed is not None


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

_MISSING = object()

# Populated with publish-once semantics: concurrent first detections may race,
# setdefault keeps whichever result landed first.
_protocol_cache: dict[Any, ProtocolDescriptor | None] = {}


def detect(tp: Any) -> ProtocolDescriptor | None:
    """Return the protocol descriptor for ``tp``, or None if it is not awaitable.

    Results are cached by type identity. Unhashable type hints are detected
    without caching.
    """
    try:
        cached = _protocol_cache.get(tp, _MISSING)
    except TypeError:
        return _detect(tp)
    if cached is not _MISSING:
        return cached
    return _protocol_cache.setdefault(tp, _detect(tp))


def is_awaitable_type(tp: Any) -> bool:
    """Check whether ``tp`` satisfies the awaitable protocol directly."""
    return detect(tp) is not None


def clear_protocol_cache() -> None:
    """Clear cached detection results (for testing)."""
    _protocol_cache.clear()


def get_protocol_cache_info() -> dict[str, Any]:
    """Get cache statistics."""
    awaitable = sum(1 for d in _protocol_cache.values() if d is not None)
    return {"cached_types": len(_protocol_cache), "awaitable_types": awaitable}


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def _detect(tp: Any) -> ProtocolDescriptor | None:
    awaitable_cls = origin_class(tp)
    if awaitable_cls is None:
        return None
    bindings = _type_var_bindings(tp)

    # 1. get_awaiter() -> A
    matches = [
        (name, fn)
        for name, fn in _members(awaitable_cls, _GET_AWAITER)
        if _is_function(fn) and _arity(fn) == 0
    ]
    if len(matches) != 1:
        if matches:
            logger.debug(
                f"{_name(tp)}: ambiguous get_awaiter ({', '.join(n for n, _ in matches)})"
            )
        return None
    get_awaiter_name, get_awaiter_fn = matches[0]
    awaiter_type = _substitute(_hints(get_awaiter_fn).get("return"), bindings)
    awaiter_cls = origin_class(awaiter_type)
    if awaiter_cls is None:
        logger.debug(f"{_name(tp)}: get_awaiter has no usable return annotation")
        return None
    awaiter_bindings = _type_var_bindings(awaiter_type)

    # 2. is_completed -> bool
    is_completed_name = None
    for name, member in _members(awaiter_cls, _IS_COMPLETED):
        if isinstance(member, property) and member.fget is not None:
            if _hints(member.fget).get("return") is bool:
                is_completed_name = name
                break
    if is_completed_name is None:
        logger.debug(f"{_name(tp)}: awaiter lacks a bool is_completed property")
        return None

    # 3. on_completed(continuation) -> None
    on_completed_name = _find_notify(awaiter_cls, _ON_COMPLETED)
    if on_completed_name is None:
        logger.debug(f"{_name(tp)}: awaiter lacks on_completed(continuation)")
        return None

    # 4. get_result() -> R
    get_result_name = None
    result_type: Any = None
    for name, fn in _members(awaiter_cls, _GET_RESULT):
        if _is_function(fn) and _arity(fn) == 0:
            get_result_name = name
            result_type = _substitute(
                _hints(fn).get("return", Any), awaiter_bindings or bindings
            )
            break
    if get_result_name is None:
        logger.debug(f"{_name(tp)}: awaiter lacks get_result()")
        return None
    if isinstance(result_type, typing.TypeVar):
        result_type = Any

    # 5. optional unsafe_on_completed(continuation) -> None
    unsafe_name = _find_notify(awaiter_cls, _UNSAFE_ON_COMPLETED)

    descriptor = ProtocolDescriptor(
        awaitable_type=tp,
        awaiter_type=awaiter_type,
        result_type=result_type,
        get_awaiter=operator.methodcaller(get_awaiter_name),
        is_completed=operator.attrgetter(is_completed_name),
        get_result=_result_hook(get_result_name, result_type is NoneType),
        on_completed=_notify_hook(on_completed_name),
        unsafe_on_completed=_notify_hook(unsafe_name) if unsafe_name else None,
    )
    logger.debug(
        f"Detected awaitable {_name(tp)} -> {_name(awaiter_type)} "
        f"(result={_name(result_type)}, unsafe={unsafe_name is not None})"
    )
    return descriptor


def _find_notify(cls: type, normalized: str) -> str | None:
    """Find ``name(continuation) -> None`` on ``cls``."""
    for name, fn in _members(cls, normalized):
        if not _is_function(fn) or _arity(fn) != 1:
            continue
        returns = _hints(fn).get("return", NoneType)
        if returns is NoneType:
            return name
    return None


def _result_hook(name: str, void: bool) -> Callable[[Any], Any]:
    call = operator.methodcaller(name)
    if not void:
        return call

    def get_void_result(awaiter: Any) -> Any:
        call(awaiter)
        return NO_VALUE

    return get_void_result


def _notify_hook(name: str) -> Callable[[Any, Callable[[], None]], None]:
    def notify(awaiter: Any, continuation: Callable[[], None]) -> None:
        getattr(awaiter, name)(continuation)

    return notify


# ---------------------------------------------------------------------------
# Introspection helpers
# ---------------------------------------------------------------------------


def _normalize(name: str) -> str:
    return name.replace("_", "").lower()


def _members(cls: type, normalized: str) -> list[tuple[str, Any]]:
    """Static lookup of every attribute whose normalized name matches."""
    members = []
    for name in dir(cls):
        if _normalize(name) == normalized:
            members.append((name, inspect.getattr_static(cls, name)))
    return members


def _is_function(member: Any) -> bool:
    return inspect.isfunction(member)


def _arity(fn: Any) -> int | None:
    """Number of positional parameters after ``self``; None if not fixed."""
    try:
        params = list(inspect.signature(fn).parameters.values())
    except (TypeError, ValueError):
        return None
    if not params:
        return None
    count = 0
    for param in params[1:]:
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            count += 1
        elif param.kind is inspect.Parameter.KEYWORD_ONLY:
            if param.default is inspect.Parameter.empty:
                return None
        else:
            return None
    return count


def _hints(fn: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(fn)
    except Exception as e:
        logger.debug(f"Could not resolve type hints for {fn!r}: {e}")
        return {}


def origin_class(tp: Any) -> type | None:
    if isinstance(tp, type):
        return tp
    origin = typing.get_origin(tp)
    if isinstance(origin, type):
        return origin
    return None


def _type_var_bindings(tp: Any) -> dict[Any, Any]:
    """Map the type variables of a generic alias's class to its arguments."""
    origin = typing.get_origin(tp)
    if origin is None:
        return {}
    params = getattr(origin, "__parameters__", ())
    args = typing.get_args(tp)
    if not params or len(params) != len(args):
        return {}
    return dict(zip(params, args))


def _substitute(hint: Any, bindings: dict[Any, Any]) -> Any:
    if not bindings or hint is None:
        return hint
    if isinstance(hint, typing.TypeVar):
        return bindings.get(hint, hint)
    params = getattr(hint, "__parameters__", ())
    if params and typing.get_origin(hint) is not None:
        try:
            return hint[tuple(bindings.get(p, p) for p in params)]
        except TypeError:
            return hint
    return hint


def _name(tp: Any) -> str:
    if isinstance(tp, type):
        return tp.__qualname__
    return repr(tp)
