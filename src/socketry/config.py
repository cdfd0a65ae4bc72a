"""
Configuration helpers for socketry.

Values are looked up in order: explicit context arguments, ``SOCKETRY_<KEY>``
environment variables, then the built-in defaults below.
"""

import os
from typing import Any, Dict, Optional

from socketry.errors import ConfigurationError

ENV_PREFIX = "SOCKETRY_"

DEFAULT_CHUNK_SIZE = 8192
DEFAULT_BACKLOG = 128
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_MAX_ATTEMPTS = 2

DEFAULTS: Dict[str, Any] = {
    "chunk_size": DEFAULT_CHUNK_SIZE,
    "backlog": DEFAULT_BACKLOG,
    "connect_timeout": DEFAULT_CONNECT_TIMEOUT,
    "max_attempts": DEFAULT_MAX_ATTEMPTS,
}


def get_env_config(key: str) -> Optional[str]:
    """Get the raw environment value for a configuration key.

    Args:
        key: The configuration key, e.g. ``chunk_size``

    Returns:
        The value of ``SOCKETRY_CHUNK_SIZE`` or None if it is not set
    """
    return os.environ.get(f"{ENV_PREFIX}{key.upper()}")


def get_env_bool(name: str, default: bool = False) -> bool:
    """
    Get a boolean value from an environment variable.

    Args:
        name: The name of the environment variable
        default: The default value if the environment variable is not set

    Returns:
        The boolean value
    """
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "y", "t")


def get_env_dict(name: str, default: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Get a dictionary from a comma-separated ``key=value`` environment variable.

    Args:
        name: The name of the environment variable
        default: The default value if the environment variable is not set

    Returns:
        The dictionary
    """
    value = os.environ.get(name)
    if not value:
        return default or {}

    result = {}
    for pair in value.split(","):
        if "=" in pair:
            key, val = pair.split("=", 1)
            result[key.strip()] = val.strip()
    return result


def get_config(key: str) -> Any:
    """Get a configuration value from the hierarchy.

    Environment values are coerced to the type of the built-in default.

    Args:
        key: The configuration key

    Returns:
        The configuration value

    Raises:
        ConfigurationError: If the key is unknown or the environment value
            cannot be coerced.
    """
    if key not in DEFAULTS:
        raise ConfigurationError(f"Unknown configuration key: {key}")
    default = DEFAULTS[key]

    env_value = get_env_config(key)
    if env_value is None:
        return default

    try:
        return type(default)(env_value)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid value for {ENV_PREFIX}{key.upper()}: {env_value!r}"
        ) from e
