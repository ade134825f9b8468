"""Late-bound invocation core: descriptors, protocol detection, invokers."""

from .descriptor import NO_VALUE, MethodDescriptor, ParameterInfo
from .protocol import (
    ProtocolDescriptor,
    clear_protocol_cache,
    detect,
    get_protocol_cache_info,
    is_awaitable_type,
)
from .coercion import (
    Coercer,
    CoercionDescriptor,
    CoercionRegistry,
    ResolvedAwaitable,
    clear_coercers,
    get_coercers,
    get_default_registry,
    register_coercer,
    reset_default_registry,
    unregister_coercer,
)
from .awaitable import UniformAwaitable, UniformWaiter
from .invoker import (
    Invoker,
    InvokerCache,
    build_invoker,
    clear_invoker_cache,
    get_invoker,
    get_invoker_cache_info,
    set_invoker_cache_size,
)
from .executor import (
    MethodExecutor,
    configure,
    execute,
    execute_async,
    get_default_config,
)

__all__ = [
    "NO_VALUE",
    "MethodDescriptor",
    "ParameterInfo",
    "ProtocolDescriptor",
    "detect",
    "is_awaitable_type",
    "clear_protocol_cache",
    "get_protocol_cache_info",
    "Coercer",
    "CoercionDescriptor",
    "CoercionRegistry",
    "ResolvedAwaitable",
    "register_coercer",
    "unregister_coercer",
    "get_coercers",
    "clear_coercers",
    "get_default_registry",
    "reset_default_registry",
    "UniformAwaitable",
    "UniformWaiter",
    "Invoker",
    "InvokerCache",
    "build_invoker",
    "get_invoker",
    "clear_invoker_cache",
    "set_invoker_cache_size",
    "get_invoker_cache_info",
    "MethodExecutor",
    "configure",
    "execute",
    "execute_async",
    "get_default_config",
]
