"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_int_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .numista import CacheTtls, NumistaConfig, build_resilience_config, get_numista_config
from .storage import StorageConfig, get_storage_config

__all__ = [
    "NO_RETRY",
    "CacheTtls",
    "ConfigurationError",
    "MissingConfigurationError",
    "NumistaConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "build_resilience_config",
    "configure_logging",
    "get_numista_config",
    "get_storage_config",
    "optional_int_env",
    "require_env_vars",
]
