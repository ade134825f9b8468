"""MethodDescriptor - resolved shape of a method that is invoked late.

A descriptor captures everything the invoker builder needs to know about a
method: the class it lives on, how it binds (instance, static or class
method), its positional parameters with their declared types, and its declared
return type. Descriptors are immutable and hashable so they can key the
process-wide invoker cache.
"""

from __future__ import annotations

import inspect
import logging
import typing
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any, Literal

import cloudpickle

from ..errors import DescriptorError, InvalidArgument

__all__ = ["NO_VALUE", "ParameterInfo", "MethodDescriptor"]

logger = logging.getLogger(__name__)

NoneType = type(None)

Binding = Literal["instance", "static", "class"]

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


class _NoValue:
    """Marker for methods and results declared as returning ``None``."""

    _instance: _NoValue | None = None

    def __new__(cls) -> _NoValue:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_VALUE"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_NoValue, ())


NO_VALUE = _NoValue()


@dataclass(frozen=True)
class ParameterInfo:
    """A positional parameter of a resolved method.

    Attributes:
        name: Parameter name as declared
        position: Zero-based position, excluding ``self``/``cls``
        annotation: Resolved type hint (``Any`` when unannotated)
        kind: ``inspect.Parameter`` kind
        default: Declared default, or ``inspect.Parameter.empty``
    """

    name: str
    position: int
    annotation: Any = Any
    kind: inspect._ParameterKind = inspect.Parameter.POSITIONAL_OR_KEYWORD
    default: Any = field(default=inspect.Parameter.empty, compare=False)

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty

    @property
    def is_variadic(self) -> bool:
        return self.kind is inspect.Parameter.VAR_POSITIONAL


@dataclass(frozen=True)
class MethodDescriptor:
    """Immutable description of a method on a target type.

    Use :meth:`resolve` to build one from a class and a method name. Two
    descriptors resolved for the same method compare equal, so they share a
    cached invoker.

    Attributes:
        target_type: Class the method is looked up on
        method_name: Attribute name of the method
        parameters: Positional parameters in declaration order
        return_type: Declared return type (``Any`` when unannotated,
            ``Coroutine[Any, Any, R]`` for ``async def`` methods)
        binding: How the target instance binds to the call
        is_coroutine: Whether the method is declared ``async def``
        parameter_defaults: Caller-supplied defaults, one per parameter
    """

    target_type: type
    method_name: str
    parameters: tuple[ParameterInfo, ...] = ()
    return_type: Any = Any
    binding: Binding = "instance"
    is_coroutine: bool = False
    parameter_defaults: tuple[Any, ...] | None = field(default=None, compare=False)

    @classmethod
    def resolve(
        cls,
        target_type: type,
        method_name: str,
        parameter_defaults: typing.Sequence[Any] | None = None,
    ) -> MethodDescriptor:
        """Resolve a descriptor for ``target_type.method_name``.

        Args:
            target_type: Class defining (or inheriting) the method
            method_name: Name of the method
            parameter_defaults: Optional defaults, one per positional parameter

        Returns:
            The resolved descriptor

        Raises:
            DescriptorError: If the attribute is missing or not callable
            InvalidArgument: If the method has required keyword-only
                parameters, or the defaults do not match the parameter count
        """
        if not isinstance(target_type, type):
            raise DescriptorError(f"Target type must be a class, got {target_type!r}")

        raw = inspect.getattr_static(target_type, method_name, None)
        if raw is None:
            raise DescriptorError(
                f"{target_type.__qualname__} has no attribute '{method_name}'"
            )

        if isinstance(raw, staticmethod):
            binding: Binding = "static"
            fn = raw.__func__
        elif isinstance(raw, classmethod):
            binding = "class"
            fn = raw.__func__
        elif callable(raw):
            binding = "instance"
            fn = raw
        else:
            raise DescriptorError(
                f"{target_type.__qualname__}.{method_name} is not a method"
            )

        try:
            signature = inspect.signature(fn)
        except (TypeError, ValueError) as e:
            raise DescriptorError(
                f"Cannot inspect signature of {target_type.__qualname__}.{method_name}: {e}"
            ) from e

        hints = _resolve_hints(fn)
        declared = list(signature.parameters.values())
        if binding != "static":
            if not declared or declared[0].kind not in _POSITIONAL_KINDS:
                raise DescriptorError(
                    f"{target_type.__qualname__}.{method_name} does not accept "
                    "the target as its first argument"
                )
            declared = declared[1:]

        parameters = []
        for param in declared:
            if param.kind is inspect.Parameter.VAR_KEYWORD:
                continue
            if param.kind is inspect.Parameter.KEYWORD_ONLY:
                if param.default is inspect.Parameter.empty:
                    raise InvalidArgument(
                        f"{target_type.__qualname__}.{method_name} has required "
                        f"keyword-only parameter '{param.name}' and cannot be "
                        "invoked positionally"
                    )
                continue
            parameters.append(
                ParameterInfo(
                    name=param.name,
                    position=len(parameters),
                    annotation=hints.get(param.name, Any),
                    kind=param.kind,
                    default=param.default,
                )
            )

        is_coroutine = inspect.iscoroutinefunction(fn)
        return_type = hints.get("return", Any)
        if is_coroutine:
            return_type = Coroutine[Any, Any, return_type]

        if parameter_defaults is not None:
            parameter_defaults = tuple(parameter_defaults)
            if len(parameter_defaults) != len(parameters):
                raise InvalidArgument(
                    f"Expected {len(parameters)} parameter defaults for "
                    f"{target_type.__qualname__}.{method_name}, "
                    f"got {len(parameter_defaults)}"
                )

        descriptor = cls(
            target_type=target_type,
            method_name=method_name,
            parameters=tuple(parameters),
            return_type=return_type,
            binding=binding,
            is_coroutine=is_coroutine,
            parameter_defaults=parameter_defaults,
        )
        logger.debug(f"Resolved {descriptor!r}")
        return descriptor

    @property
    def qualname(self) -> str:
        return f"{self.target_type.__qualname__}.{self.method_name}"

    @property
    def returns_value(self) -> bool:
        """False when the method is declared ``-> None`` (and is not async)."""
        return self.return_type is not NoneType

    def get_default_value_for_parameter(self, index: int) -> Any:
        """Return the caller-supplied default for the parameter at ``index``.

        Raises:
            DescriptorError: If no parameter defaults were supplied
            IndexError: If ``index`` is out of range
        """
        if self.parameter_defaults is None:
            raise DescriptorError(
                f"Cannot get a parameter default for {self.qualname}: "
                "no parameter default values were supplied"
            )
        if index < 0 or index >= len(self.parameters):
            raise IndexError(f"Parameter index {index} out of range for {self.qualname}")
        return self.parameter_defaults[index]

    def __reduce__(self):
        """Pickle by re-resolving; the class travels through cloudpickle.

        This allows descriptors for locally-defined classes to be sent to
        worker processes.
        """
        return (
            _reconstruct_descriptor,
            (
                cloudpickle.dumps(self.target_type),
                self.method_name,
                self.parameter_defaults,
            ),
        )

    def __repr__(self) -> str:
        params = ", ".join(_describe_parameter(p) for p in self.parameters)
        returns = _type_repr(self.return_type)
        return f"MethodDescriptor({self.qualname}({params}) -> {returns})"


def _reconstruct_descriptor(class_bytes, method_name, parameter_defaults):
    """Rebuild a MethodDescriptor after unpickling."""
    target_type = cloudpickle.loads(class_bytes)
    return MethodDescriptor.resolve(target_type, method_name, parameter_defaults)


def _resolve_hints(fn: Any) -> dict[str, Any]:
    """Resolve type hints, falling back to raw annotations on failure."""
    try:
        return typing.get_type_hints(fn)
    except Exception as e:
        logger.debug(f"Could not resolve type hints for {fn!r}: {e}")
        annotations = getattr(fn, "__annotations__", None) or {}
        return {
            name: NoneType if value is None else value
            for name, value in annotations.items()
        }


def _type_repr(tp: Any) -> str:
    if isinstance(tp, type):
        return tp.__qualname__
    return repr(tp)


def _describe_parameter(param: ParameterInfo) -> str:
    prefix = "*" if param.is_variadic else ""
    return f"{prefix}{param.name}: {_type_repr(param.annotation)}"
