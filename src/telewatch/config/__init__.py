"""Application configuration helpers."""

from __future__ import annotations

from telewatch.common.logging import configure_logging

from .backend import BackendConfig, StreamConfig, get_backend_config
from .env import env_float, env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

__all__ = [
    "BackendConfig",
    "CacheConfig",
    "ConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StreamConfig",
    "configure_logging",
    "env_float",
    "env_int",
    "get_backend_config",
    "optional_env_var",
    "require_env_vars",
]
