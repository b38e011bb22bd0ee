"""Silo configuration.

This module provides the public API for Silo configuration: typed models and
loading from TOML files and SILO_* environment variables.

Example:
    >>> from silo.config import load_config
    >>> config = load_config()
    >>> config.logging.level
    <LogLevel.WARNING: 'warning'>
"""

from silo.config._loader import (
    deep_merge,
    load_config,
    parse_env_vars,
    read_toml_file,
    set_nested_key,
)
from silo.config._models import (
    LogFormat,
    LoggingConfig,
    LogLevel,
    RepositoryConfig,
    SiloConfig,
)
from silo.exceptions import ConfigError, ConfigLoadError

__all__ = [
    "ConfigError",
    "ConfigLoadError",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "RepositoryConfig",
    "SiloConfig",
    "deep_merge",
    "load_config",
    "parse_env_vars",
    "read_toml_file",
    "set_nested_key",
]
