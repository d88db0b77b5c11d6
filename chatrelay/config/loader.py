"""Configuration loading utilities for chatrelay."""

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from chatrelay.config.schema import Config

# Values under these keys are user data (HTTP header names), not config fields.
_VERBATIM_KEYS = frozenset({"extra_headers"})


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".chatrelay" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, falling back to environment and defaults.

    ``CHATRELAY_*`` environment variables take precedence over values in the
    file, so secrets can stay out of it.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top-level value must be an object")
            return Config(**convert_keys(data))
        except (json.JSONDecodeError, ValueError, ValidationError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using environment and default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """
    Save configuration to file in camelCase form.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.

    Returns:
        The path written.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        converted = {}
        for k, v in data.items():
            key = camel_to_snake(k)
            converted[key] = v if key in _VERBATIM_KEYS else convert_keys(v)
        return converted
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): v if k in _VERBATIM_KEYS else convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
