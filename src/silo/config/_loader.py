# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""TOML configuration file loading and merging."""

import json
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from silo.config._models import SiloConfig
from silo.exceptions import ConfigLoadError


def read_toml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a TOML file.

    Args:
        path: Path to the TOML file.

    Returns:
        Parsed TOML content as dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file cannot be parsed.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file: {e}"
        raise ConfigLoadError(
            msg,
            path=path,
            line=e.lineno,
            column=e.colno,
        ) from e


def deep_merge(
    base: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    override: dict[str, Any],  # pyright: ignore[reportExplicitAny]
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Deep merge two configuration dictionaries.

    Merges `override` into `base`, returning a new dictionary. Neither input
    is modified. Nested dictionaries are merged recursively; any other value
    in `override` replaces the one in `base`.

    Args:
        base: Base configuration (lower precedence).
        override: Override configuration (higher precedence).

    Returns:
        Merged configuration dictionary.
    """
    result: dict[str, Any] = dict(base)  # pyright: ignore[reportExplicitAny]

    for key, override_val in override.items():
        base_val = result.get(key)
        if isinstance(base_val, dict) and isinstance(override_val, dict):
            result[key] = deep_merge(base_val, override_val)
        else:
            result[key] = override_val

    return result


def parse_env_vars(
    prefix: str = "SILO_",
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Parse environment variables into config dictionary.

    Only variables naming a section key with a double underscore are
    considered, so SILO_DEBUG and SILO_AUTHOR_NAME stay out of the config.

    Args:
        prefix: Environment variable prefix (default: "SILO_").

    Returns:
        Dictionary of parsed config values with nested structure.

    Environment variable naming:
        - Add prefix (SILO_)
        - Convert to uppercase
        - Replace dots with double underscores
        - Example: repository.create -> SILO_REPOSITORY__CREATE
    """
    result: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix) :]
        if "__" not in config_key:
            continue

        config_path = config_key.replace("__", ".").lower()
        set_nested_key(result, config_path, _parse_env_value(value))

    return result


def _parse_env_value(value: str) -> Any:  # pyright: ignore[reportExplicitAny]
    """Parse environment variable value with type inference.

    Args:
        value: The raw string value from the environment variable.

    Returns:
        The parsed value: bool for true/false/1/0, JSON for arrays and
        objects, the raw string otherwise.
    """
    lower_value = value.lower()
    if lower_value in ("true", "false", "1", "0"):
        return lower_value in ("true", "1")

    if (value.startswith("[") and value.endswith("]")) or (
        value.startswith("{") and value.endswith("}")
    ):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass

    return value


def set_nested_key(
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    key_path: str,
    value: Any,  # pyright: ignore[reportExplicitAny]
) -> None:
    """Set a value in a nested dictionary using a dot-separated key path.

    Args:
        data: The dictionary to modify in place.
        key_path: Dot-separated key path (e.g., "logging.level").
        value: The value to set.
    """
    *parents, leaf = key_path.split(".")
    current = data
    for part in parents:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[leaf] = value


def load_config(
    path: Path | None = None,
    *,
    include_env: bool = True,
) -> SiloConfig:
    """Load Silo configuration from a TOML file and the environment.

    Environment variables take precedence over the file.

    Args:
        path: Optional TOML file. Missing files raise FileNotFoundError.
        include_env: Merge SILO_* environment variables.

    Returns:
        The validated configuration.

    Raises:
        FileNotFoundError: If `path` is given but does not exist.
        ConfigLoadError: If the file cannot be parsed or validation fails.

    Example:
        >>> config = load_config(Path("silo.toml"))
        >>> config.repository.create
        True
    """
    data: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    if path is not None:
        data = read_toml_file(path)
    if include_env:
        data = deep_merge(data, parse_env_vars())

    try:
        return SiloConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigLoadError(msg, path=path) from e
