"""Configuration management."""

from .config import (
    CacheConfig,
    Config,
    ConfigError,
    DataSourceConfig,
    LoggingConfig,
    ScopeConfig,
    build_registry,
    load_config,
)

__all__ = [
    "CacheConfig",
    "Config",
    "ConfigError",
    "DataSourceConfig",
    "LoggingConfig",
    "ScopeConfig",
    "build_registry",
    "load_config",
]
