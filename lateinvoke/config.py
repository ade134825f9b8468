"""Executor configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping

__all__ = ["ExecutorConfig"]

ENV_CHECK_ARGUMENT_TYPES = "LATEINVOKE_CHECK_ARGUMENT_TYPES"
ENV_INVOKER_CACHE_SIZE = "LATEINVOKE_INVOKER_CACHE_SIZE"

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ExecutorConfig:
    """Executor settings.

    Args:
        check_argument_types: Narrow arguments against the declared parameter
            types before calling (arity is always checked)
        invoker_cache_size: Maximum number of cached invokers (-1 = unlimited)

    Example:
        ExecutorConfig(check_argument_types=False)
        ExecutorConfig.create({"invoker_cache_size": 1024})
        ExecutorConfig.from_env()
    """

    check_argument_types: bool = True
    invoker_cache_size: int = -1

    @staticmethod
    def create(
        config: "ExecutorConfig | Mapping[str, Any] | None" = None, **overrides: Any
    ) -> "ExecutorConfig":
        """Create config from an instance, a dict, or keyword overrides."""
        if isinstance(config, ExecutorConfig):
            base = config
        elif config is not None:
            base = ExecutorConfig(**dict(config))
        else:
            base = ExecutorConfig()
        return replace(base, **overrides) if overrides else base

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ExecutorConfig":
        """Read settings from ``LATEINVOKE_*`` environment variables."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        check = env.get(ENV_CHECK_ARGUMENT_TYPES)
        if check is not None:
            values["check_argument_types"] = check.strip().lower() not in _FALSE_VALUES

        cache_size = env.get(ENV_INVOKER_CACHE_SIZE)
        if cache_size is not None:
            try:
                values["invoker_cache_size"] = int(cache_size)
            except ValueError:
                raise ValueError(
                    f"{ENV_INVOKER_CACHE_SIZE} must be an integer, got {cache_size!r}"
                ) from None

        return cls(**values)
