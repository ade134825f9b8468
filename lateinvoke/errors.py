"""Error types for lateinvoke."""

from __future__ import annotations


class LateInvokeError(Exception):
    """Base exception for all lateinvoke errors."""

    pass


class InvalidArgument(LateInvokeError, TypeError):
    """Raised when arguments do not fit the resolved method descriptor."""

    pass


class UnsupportedOperation(LateInvokeError, TypeError):
    """Raised when an async call is requested for a non-awaitable method."""

    def __init__(self, method_name: str, return_type: object):
        self.method_name = method_name
        self.return_type = return_type
        super().__init__(
            f"Method '{method_name}' returns {_type_name(return_type)}, which is "
            "not awaitable directly or through a registered coercion. "
            "Use execute() instead."
        )


class ProtocolViolation(LateInvokeError, RuntimeError):
    """Raised when a value breaks the awaitable contract detected for its type."""

    pass


class DescriptorError(LateInvokeError, LookupError):
    """Raised when a method descriptor cannot be resolved."""

    pass


def _type_name(tp: object) -> str:
    if isinstance(tp, type):
        return tp.__qualname__
    return repr(tp)
