"""Helpers for reading environment configuration."""

import logging
import os
from typing import Any, Dict, Iterable, List, Union

import orjson

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes", "y")
FALSE_VALUES = ("false", "0", "no", "n")


def get_bool_env(name: str, default: Union[bool, str] = False) -> bool:
    """
    Retrieve a boolean value from an environment variable.

    Args:
        name (str): The name of the environment variable.
        default (Union[bool, str], optional): Value used when the variable is unset or unrecognized.

    Returns:
        bool: The parsed value.
    """
    if isinstance(default, str):
        default = default.lower() in TRUE_VALUES

    value = os.getenv(name)
    if value is None:
        return default
    if value.lower() in TRUE_VALUES:
        return True
    if value.lower() in FALSE_VALUES:
        return False

    logger.warning(
        f"Environment variable '{name}' has unrecognized value '{value}'. "
        f"Expected one of {TRUE_VALUES + FALSE_VALUES}. Using default: {default}"
    )
    return default


def get_json_env(name: str) -> Dict[str, Any]:
    """Parse a JSON object held in an environment variable.

    Returns an empty dict when the variable is unset or blank.

    Raises:
        ValueError: If the value is not a JSON object.
    """
    raw = os.getenv(name, "").strip()
    if not raw:
        return {}
    try:
        value = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {name}: {e}") from e
    if not isinstance(value, dict):
        raise ValueError(f"{name} must hold a JSON object")
    return value


def unique(values: Iterable[str]) -> List[str]:
    """Drop repeated values, keeping first-seen order."""
    return list(dict.fromkeys(values))
