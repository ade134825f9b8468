"""Invoker builder - specialized call paths per method descriptor.

For every descriptor we build, once, a *direct* path (check arguments, call
the method, return the raw result) and, when the declared return type is
awaitable directly or through a coercion, an *async* path that wraps the
result in a UniformAwaitable. All introspection happens at build time; the
returned closures only do the work the descriptor actually needs.
"""

from __future__ import annotations

import inspect
import logging
import types
import typing
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Union

from ..errors import InvalidArgument, ProtocolViolation
from .awaitable import UniformAwaitable
from .coercion import CoercionDescriptor, CoercionRegistry, get_default_registry
from .descriptor import NO_VALUE, MethodDescriptor, NoneType
from .protocol import ProtocolDescriptor

__all__ = [
    "Invoker",
    "InvokerCache",
    "build_invoker",
    "get_invoker",
    "clear_invoker_cache",
    "set_invoker_cache_size",
    "get_invoker_cache_info",
]

logger = logging.getLogger(__name__)

DirectCall = Callable[[Any, tuple], Any]
AsyncCall = Callable[[Any, tuple], UniformAwaitable]


@dataclass(frozen=True)
class Invoker:
    """Compiled invocation plan for one method descriptor.

    Never mutated after construction; a different descriptor gets a different
    invoker.

    Attributes:
        descriptor: The descriptor this plan was built for
        direct: ``(target, args) -> result``, no awaitable handling
        protocol: Resolved protocol hooks, when the return type is awaitable
        coercion: Coercion applied before wrapping, if one was needed
        invoke_async: ``(target, args) -> UniformAwaitable``, or None
    """

    descriptor: MethodDescriptor
    direct: DirectCall
    protocol: ProtocolDescriptor | None = None
    coercion: CoercionDescriptor | None = None
    invoke_async: AsyncCall | None = None

    @property
    def is_async(self) -> bool:
        return self.invoke_async is not None

    @property
    def async_result_type(self) -> Any:
        return self.protocol.result_type if self.protocol is not None else None


def build_invoker(
    descriptor: MethodDescriptor,
    registry: CoercionRegistry | None = None,
    *,
    check_argument_types: bool = True,
) -> Invoker:
    """Build an invoker for ``descriptor``.

    Building is side-effect free; two builds for equal descriptors behave
    identically.

    Args:
        descriptor: Resolved method descriptor
        registry: Coercion registry (defaults to the process-wide one)
        check_argument_types: Narrow arguments against declared parameter types

    Returns:
        The invoker
    """
    if registry is None:
        registry = get_default_registry()

    direct = _build_direct(descriptor, check_argument_types)

    resolved = registry.resolve(descriptor.return_type)
    if resolved is None:
        logger.debug(f"Built invoker for {descriptor.qualname} (sync only)")
        return Invoker(descriptor=descriptor, direct=direct)

    invoke_async = _build_async(descriptor, direct, resolved.protocol, resolved.coercion)
    logger.debug(
        f"Built invoker for {descriptor.qualname} "
        f"(async, result={resolved.protocol.result_type!r}, "
        f"coercion={resolved.coercion.name if resolved.coercion else None})"
    )
    return Invoker(
        descriptor=descriptor,
        direct=direct,
        protocol=resolved.protocol,
        coercion=resolved.coercion,
        invoke_async=invoke_async,
    )


# ---------------------------------------------------------------------------
# Direct path
# ---------------------------------------------------------------------------


def _build_direct(descriptor: MethodDescriptor, check_argument_types: bool) -> DirectCall:
    call = _build_call(descriptor)
    prepare = _build_argument_adapter(descriptor, check_argument_types)
    target_type = descriptor.target_type
    qualname = descriptor.qualname
    void = descriptor.return_type is NoneType

    def direct(target: Any, args: tuple) -> Any:
        if not isinstance(target, target_type):
            raise InvalidArgument(
                f"{qualname} expects a {target_type.__qualname__} target, "
                f"got {type(target).__qualname__}"
            )
        result = call(target, prepare(args))
        if void:
            return NO_VALUE
        return result

    return direct


def _build_call(descriptor: MethodDescriptor) -> Callable[[Any, tuple], Any]:
    """Bind the method once; dispatch to overrides only for subclass targets."""
    name = descriptor.method_name
    target_type = descriptor.target_type
    raw = inspect.getattr_static(target_type, name)

    if descriptor.binding == "static":
        fn = raw.__func__

        def call_static(target: Any, args: tuple) -> Any:
            return fn(*args)

        return call_static

    if descriptor.binding == "class":
        fn = raw.__func__

        def call_class(target: Any, args: tuple) -> Any:
            return fn(type(target), *args)

        return call_class

    fn = raw

    def call_instance(target: Any, args: tuple) -> Any:
        if type(target) is target_type:
            return fn(target, *args)
        return getattr(target, name)(*args)

    return call_instance


def _build_argument_adapter(
    descriptor: MethodDescriptor, check_argument_types: bool
) -> Callable[[tuple], tuple]:
    """Build the arity check, default fill-in and type narrowing for a call."""
    qualname = descriptor.qualname
    fixed = [p for p in descriptor.parameters if not p.is_variadic]
    variadic = next((p for p in descriptor.parameters if p.is_variadic), None)
    fixed_count = len(fixed)
    required_count = sum(1 for p in fixed if not p.has_default)
    fill = tuple(p.default for p in fixed)

    checks: list[tuple[int, str, Any, Callable[[Any], bool]]] = []
    variadic_check = None
    if check_argument_types:
        for param in fixed:
            check = _compile_check(param.annotation)
            if check is not None:
                checks.append((param.position, param.name, param.annotation, check))
        if variadic is not None:
            variadic_check = _compile_check(variadic.annotation)

    def check_arity(count: int) -> None:
        if count < required_count or (variadic is None and count > fixed_count):
            if variadic is not None:
                expected = f"at least {required_count}"
            elif required_count == fixed_count:
                expected = str(fixed_count)
            else:
                expected = f"{required_count} to {fixed_count}"
            raise InvalidArgument(
                f"{qualname} expects {expected} argument(s), got {count}"
            )

    if not checks and variadic_check is None:
        if required_count == fixed_count and variadic is None:

            def prepare_exact(args: tuple) -> tuple:
                if len(args) != fixed_count:
                    check_arity(len(args))
                return args

            return prepare_exact

        def prepare_unchecked(args: tuple) -> tuple:
            count = len(args)
            check_arity(count)
            if count < fixed_count:
                return tuple(args) + fill[count:]
            return args

        return prepare_unchecked

    def prepare_checked(args: tuple) -> tuple:
        count = len(args)
        check_arity(count)
        for index, name, annotation, check in checks:
            if index < count and not check(args[index]):
                raise _type_mismatch(qualname, name, annotation, args[index])
        if variadic_check is not None:
            for value in args[fixed_count:]:
                if not variadic_check(value):
                    raise _type_mismatch(
                        qualname, variadic.name, variadic.annotation, value
                    )
        if count < fixed_count:
            return tuple(args) + fill[count:]
        return args

    return prepare_checked


def _type_mismatch(
    qualname: str, name: str, annotation: Any, value: Any
) -> InvalidArgument:
    expected = annotation.__qualname__ if isinstance(annotation, type) else repr(annotation)
    return InvalidArgument(
        f"Argument '{name}' of {qualname} expects {expected}, "
        f"got {type(value).__qualname__}"
    )


def _compile_check(annotation: Any) -> Callable[[Any], bool] | None:
    """Return an ``isinstance``-style predicate, or None when not checkable."""
    if annotation is Any or annotation is object or annotation is inspect.Parameter.empty:
        return None
    if annotation is None or annotation is NoneType:
        return lambda value: value is None
    # Numeric tower: int is acceptable for float, int and float for complex.
    if annotation is float:
        return lambda value: isinstance(value, (int, float))
    if annotation is complex:
        return lambda value: isinstance(value, (int, float, complex))

    supertype = getattr(annotation, "__supertype__", None)
    if supertype is not None:
        return _compile_check(supertype)

    origin = typing.get_origin(annotation)
    if origin is typing.Annotated:
        return _compile_check(typing.get_args(annotation)[0])
    if origin is Union or origin is types.UnionType:
        members = [_compile_check(arg) for arg in typing.get_args(annotation)]
        if any(member is None for member in members):
            return None
        return lambda value: any(member(value) for member in members)
    if origin is typing.Literal:
        allowed = typing.get_args(annotation)
        return lambda value: any(value == option for option in allowed)

    cls = origin if isinstance(origin, type) else annotation
    if not isinstance(cls, type):
        return None
    # isinstance() raises on protocols that are not runtime checkable.
    if getattr(cls, "_is_protocol", False) and not getattr(
        cls, "_is_runtime_protocol", False
    ):
        return None
    return lambda value: isinstance(value, cls)


# ---------------------------------------------------------------------------
# Async path
# ---------------------------------------------------------------------------


def _build_async(
    descriptor: MethodDescriptor,
    direct: DirectCall,
    protocol: ProtocolDescriptor,
    coercion: CoercionDescriptor | None,
) -> AsyncCall:
    qualname = descriptor.qualname

    def returned_none() -> ProtocolViolation:
        return ProtocolViolation(
            f"{qualname} is declared to return {descriptor.return_type!r} but returned None"
        )

    if coercion is None:

        def invoke_async(target: Any, args: tuple) -> UniformAwaitable:
            value = direct(target, args)
            if value is None:
                raise returned_none()
            return UniformAwaitable(value, protocol)

        return invoke_async

    convert = coercion.convert

    def invoke_coerced(target: Any, args: tuple) -> UniformAwaitable:
        value = direct(target, args)
        if value is None:
            raise returned_none()
        return UniformAwaitable(convert(value), protocol)

    return invoke_coerced


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

DEFAULT_CACHE_SIZE = -1


class InvokerCache:
    """LRU cache for built invokers (unbounded by default)."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        self._cache: OrderedDict[tuple, Invoker] = OrderedDict()
        self._max_size = max_size

    def get(self, key: tuple) -> Invoker | None:
        invoker = self._cache.get(key)
        if invoker is not None:
            self._touch(key)
        return invoker

    def __contains__(self, key: tuple) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def get_or_build(self, key: tuple, build: Callable[[], Invoker]) -> Invoker:
        """Return the cached invoker, building and publishing it if missing.

        Concurrent first calls may each build; the first one published is
        kept and the others are discarded.
        """
        invoker = self._cache.get(key)
        if invoker is None:
            invoker = self._cache.setdefault(key, build())
            self._evict()
        else:
            self._touch(key)
        return invoker

    def clear(self) -> None:
        self._cache.clear()

    def set_max_size(self, max_size: int) -> None:
        self._max_size = max_size
        self._evict()

    def info(self) -> dict[str, Any]:
        return {"cached_invokers": len(self._cache), "max_size": self._max_size}

    def _touch(self, key: tuple) -> None:
        try:
            self._cache.move_to_end(key)
        except KeyError:
            # Evicted by another thread since the lookup.
            pass

    def _evict(self) -> None:
        if self._max_size >= 0:
            while len(self._cache) > self._max_size:
                try:
                    self._cache.popitem(last=False)
                except KeyError:
                    break


_invoker_cache = InvokerCache()


def get_invoker(
    descriptor: MethodDescriptor,
    registry: CoercionRegistry | None = None,
    *,
    check_argument_types: bool = True,
) -> Invoker:
    """Get the cached invoker for ``descriptor``, building it on first use."""
    if registry is None:
        registry = get_default_registry()
    key = (descriptor, registry, check_argument_types)
    return _invoker_cache.get_or_build(
        key,
        lambda: build_invoker(
            descriptor, registry, check_argument_types=check_argument_types
        ),
    )


def clear_invoker_cache() -> None:
    """Clear the invoker cache."""
    _invoker_cache.clear()


def set_invoker_cache_size(max_size: int) -> None:
    """Set maximum cache size (-1 for unlimited)."""
    _invoker_cache.set_max_size(max_size)


def get_invoker_cache_info() -> dict[str, Any]:
    """Get cache statistics."""
    return _invoker_cache.info()
