"""Coercion registry for foreign asynchronous types.

Some asynchronous values (futures from other ecosystems, coroutines, Twisted
Deferreds) do not satisfy the awaitable protocol themselves. A coercer
recognizes such a type and supplies a conversion to a protocol-conformant
type. The registry is only consulted when direct detection fails, coercers are
tried in registration order, and the first match wins. At most one coercion
layer is applied: the converted type must be directly awaitable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

from .protocol import ProtocolDescriptor, detect

__all__ = [
    "CoercionDescriptor",
    "Coercer",
    "ResolvedAwaitable",
    "CoercionRegistry",
    "register_coercer",
    "unregister_coercer",
    "get_coercers",
    "clear_coercers",
    "get_default_registry",
    "reset_default_registry",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoercionDescriptor:
    """How to turn a foreign asynchronous value into an awaitable one.

    Attributes:
        name: Name of the coercer that produced this descriptor
        source_type: The foreign type that was recognized
        convert: ``(foreign_value) -> awaitable_value``
        result_type: Type of the converted value; must be directly awaitable
    """

    name: str
    source_type: Any
    convert: Callable[[Any], Any]
    result_type: Any


class Coercer(Protocol):
    """Protocol for coercers.

    A coercer returns a CoercionDescriptor when it recognizes ``tp`` and None
    otherwise. Raising during recognition counts as not recognizing.
    """

    def try_coerce(self, tp: Any) -> CoercionDescriptor | None: ...


@dataclass(frozen=True)
class ResolvedAwaitable:
    """Protocol hooks for a return type, plus the coercion used to reach them."""

    protocol: ProtocolDescriptor
    coercion: CoercionDescriptor | None = None

    @property
    def requires_coercion(self) -> bool:
        return self.coercion is not None


_MISSING = object()


class CoercionRegistry:
    """Ordered set of coercers with a per-type lookup cache."""

    def __init__(self, coercers: Iterable[Coercer] = ()):
        self._coercers: list[Coercer] = []
        self._cache: dict[Any, CoercionDescriptor | None] = {}
        for coercer in coercers:
            self.register(coercer)

    def register(self, coercer: Coercer) -> None:
        """Append a coercer. Registering the same coercer twice is a no-op."""
        if coercer not in self._coercers:
            self._coercers.append(coercer)
            self._cache.clear()

    def unregister(self, coercer: Coercer) -> None:
        if coercer in self._coercers:
            self._coercers.remove(coercer)
            self._cache.clear()

    def coercers(self) -> list[Coercer]:
        return self._coercers.copy()

    def clear(self) -> None:
        self._coercers.clear()
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._coercers)

    def try_coerce(self, tp: Any) -> CoercionDescriptor | None:
        """Return the first matching coercion for ``tp``, or None."""
        try:
            cached = self._cache.get(tp, _MISSING)
        except TypeError:
            return self._find(tp)
        if cached is not _MISSING:
            return cached
        return self._cache.setdefault(tp, self._find(tp))

    def resolve(self, tp: Any) -> ResolvedAwaitable | None:
        """Resolve ``tp`` to protocol hooks, directly or through one coercion."""
        protocol = detect(tp)
        if protocol is not None:
            return ResolvedAwaitable(protocol)

        coercion = self.try_coerce(tp)
        if coercion is None:
            return None

        protocol = detect(coercion.result_type)
        if protocol is None:
            logger.debug(
                f"Coercer '{coercion.name}' produced {coercion.result_type!r}, "
                "which is not awaitable"
            )
            return None
        return ResolvedAwaitable(protocol, coercion)

    def _find(self, tp: Any) -> CoercionDescriptor | None:
        for coercer in tuple(self._coercers):
            try:
                coercion = coercer.try_coerce(tp)
            except Exception as e:
                logger.debug(f"Coercer {coercer!r} failed on {tp!r}: {e}")
                continue
            if coercion is not None:
                logger.debug(
                    f"Coercer '{coercion.name}' maps {tp!r} -> {coercion.result_type!r}"
                )
                return coercion
        return None

    def __repr__(self) -> str:
        return f"CoercionRegistry({self._coercers!r})"


# ---------------------------------------------------------------------------
# Default registry
# ---------------------------------------------------------------------------

_default_registry: CoercionRegistry | None = None


def get_default_registry() -> CoercionRegistry:
    """Get the process-wide registry, created with the built-in coercers."""
    global _default_registry
    if _default_registry is None:
        from ..runtime.adapters import builtin_coercers

        _default_registry = CoercionRegistry(builtin_coercers())
    return _default_registry


def reset_default_registry() -> None:
    """Drop the process-wide registry; the next access rebuilds the defaults."""
    global _default_registry
    _default_registry = None


def register_coercer(coercer: Coercer) -> None:
    """Register a coercer in the default registry.

    Coercers are checked in registration order after the built-in ones. The
    first coercer that recognizes a type wins.
    """
    get_default_registry().register(coercer)


def unregister_coercer(coercer: Coercer) -> None:
    get_default_registry().unregister(coercer)


def get_coercers() -> list[Coercer]:
    """Get all coercers of the default registry (for testing/debugging)."""
    return get_default_registry().coercers()


def clear_coercers() -> None:
    """Remove every coercer, built-ins included, from the default registry."""
    get_default_registry().clear()
