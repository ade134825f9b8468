"""lateinvoke - late-bound method invocation with uniform awaitable results."""

from .config import ExecutorConfig
from .errors import (
    DescriptorError,
    InvalidArgument,
    LateInvokeError,
    ProtocolViolation,
    UnsupportedOperation,
)
from .core import (
    NO_VALUE,
    CoercionDescriptor,
    CoercionRegistry,
    MethodDescriptor,
    MethodExecutor,
    ProtocolDescriptor,
    UniformAwaitable,
    UniformWaiter,
    configure,
    detect,
    execute,
    execute_async,
    register_coercer,
    unregister_coercer,
)
from .runtime import Completion, wait

__version__ = "0.1.0"

__all__ = [
    # Core
    "NO_VALUE",
    "MethodDescriptor",
    "MethodExecutor",
    "UniformAwaitable",
    "UniformWaiter",
    "ProtocolDescriptor",
    "detect",
    "execute",
    "execute_async",
    "configure",
    "ExecutorConfig",
    # Coercion
    "CoercionDescriptor",
    "CoercionRegistry",
    "register_coercer",
    "unregister_coercer",
    # Runtime
    "Completion",
    "wait",
    # Errors
    "LateInvokeError",
    "InvalidArgument",
    "UnsupportedOperation",
    "ProtocolViolation",
    "DescriptorError",
]
