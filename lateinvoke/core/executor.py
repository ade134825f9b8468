"""MethodExecutor - public entry point for late-bound invocation."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from ..config import ExecutorConfig
from ..errors import UnsupportedOperation
from .awaitable import UniformAwaitable
from .coercion import CoercionRegistry, get_default_registry
from .descriptor import MethodDescriptor
from .invoker import Invoker, get_invoker, set_invoker_cache_size

__all__ = [
    "MethodExecutor",
    "execute",
    "execute_async",
    "configure",
    "get_default_config",
]


class MethodExecutor:
    """Executes one resolved method on arbitrary target instances.

    The invoker is built on first use and shared through the process-wide
    invoker cache, so creating many executors for the same descriptor is
    cheap.

    Example:
        executor = MethodExecutor.for_method(Service, "fetch")
        raw = executor.execute(service, 5)          # whatever fetch returns
        awaitable = executor.execute_async(service, 5)
        result = await awaitable
    """

    def __init__(
        self,
        descriptor: MethodDescriptor,
        registry: CoercionRegistry | None = None,
        config: ExecutorConfig | None = None,
    ):
        self._descriptor = descriptor
        self._registry = registry
        self._config = config
        self._invoker: Invoker | None = None

    @classmethod
    def create(
        cls,
        descriptor: MethodDescriptor,
        *,
        registry: CoercionRegistry | None = None,
        config: ExecutorConfig | Mapping[str, Any] | None = None,
    ) -> MethodExecutor:
        """Create an executor for a resolved descriptor.

        Args:
            descriptor: The method to execute
            registry: Coercion registry (defaults to the process-wide one)
            config: Executor settings (defaults to :func:`get_default_config`)
        """
        if config is not None:
            config = ExecutorConfig.create(config)
        return cls(descriptor, registry, config)

    @classmethod
    def for_method(
        cls,
        target_type: type,
        method_name: str,
        *,
        parameter_defaults: Sequence[Any] | None = None,
        registry: CoercionRegistry | None = None,
        config: ExecutorConfig | Mapping[str, Any] | None = None,
    ) -> MethodExecutor:
        """Resolve ``target_type.method_name`` and create an executor for it."""
        descriptor = MethodDescriptor.resolve(target_type, method_name, parameter_defaults)
        return cls.create(descriptor, registry=registry, config=config)

    @property
    def descriptor(self) -> MethodDescriptor:
        return self._descriptor

    @property
    def invoker(self) -> Invoker:
        invoker = self._invoker
        if invoker is None:
            config = self._config or get_default_config()
            registry = self._registry
            if registry is None:
                registry = get_default_registry()
            invoker = get_invoker(
                self._descriptor,
                registry,
                check_argument_types=config.check_argument_types,
            )
            self._invoker = invoker
        return invoker

    @property
    def method_return_type(self) -> Any:
        return self._descriptor.return_type

    @property
    def is_method_async(self) -> bool:
        """Whether :meth:`execute_async` is supported for this method."""
        return self.invoker.is_async

    @property
    def async_result_type(self) -> Any:
        """Result type of the awaitable, or None for non-async methods."""
        return self.invoker.async_result_type

    def execute(self, target: Any, *args: Any) -> Any:
        """Call the method on ``target`` and return its raw result.

        Works for async methods too; the concrete awaitable is returned as is.
        Methods declared ``-> None`` return ``NO_VALUE``.

        Raises:
            InvalidArgument: If ``target`` or ``args`` do not fit the descriptor
        """
        return self.invoker.direct(target, args)

    def execute_async(self, target: Any, *args: Any) -> UniformAwaitable:
        """Call the method on ``target`` and wrap its awaitable result.

        Raises:
            UnsupportedOperation: If the return type is not awaitable, directly
                or through a registered coercion
            InvalidArgument: If ``target`` or ``args`` do not fit the descriptor
        """
        invoker = self.invoker
        if invoker.invoke_async is None:
            raise UnsupportedOperation(
                self._descriptor.qualname, self._descriptor.return_type
            )
        return invoker.invoke_async(target, args)

    def get_default_value_for_parameter(self, index: int) -> Any:
        return self._descriptor.get_default_value_for_parameter(index)

    def __repr__(self) -> str:
        return f"MethodExecutor({self._descriptor.qualname})"


# ---------------------------------------------------------------------------
# Module-level API
# ---------------------------------------------------------------------------

_default_config: ExecutorConfig | None = None


def get_default_config() -> ExecutorConfig:
    """Get the process-wide config, read from the environment on first use."""
    config = _default_config
    if config is None:
        config = configure(ExecutorConfig.from_env())
    return config


def configure(
    config: ExecutorConfig | Mapping[str, Any] | None = None, **overrides: Any
) -> ExecutorConfig:
    """Set the process-wide config and apply the invoker cache size.

    Example:
        configure(check_argument_types=False)
        configure({"invoker_cache_size": 1024})
    """
    global _default_config
    _default_config = ExecutorConfig.create(config, **overrides)
    set_invoker_cache_size(_default_config.invoker_cache_size)
    return _default_config


def execute(descriptor: MethodDescriptor, target: Any, *args: Any) -> Any:
    """Execute ``descriptor`` on ``target`` through the default executor path."""
    return _default_invoker(descriptor).direct(target, args)


def execute_async(
    descriptor: MethodDescriptor, target: Any, *args: Any
) -> UniformAwaitable:
    """Execute ``descriptor`` on ``target`` and wrap its awaitable result."""
    invoker = _default_invoker(descriptor)
    if invoker.invoke_async is None:
        raise UnsupportedOperation(descriptor.qualname, descriptor.return_type)
    return invoker.invoke_async(target, args)


def _default_invoker(descriptor: MethodDescriptor) -> Invoker:
    return get_invoker(
        descriptor,
        get_default_registry(),
        check_argument_types=get_default_config().check_argument_types,
    )
