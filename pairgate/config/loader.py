"""Configuration loading and saving."""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from pairgate.config.schema import Config


def get_data_dir() -> Path:
    """Get the pairgate data directory."""
    path = Path.home() / ".pairgate"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".pairgate" / "config.json"


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    first, *rest = name.split("_")
    return first + "".join(word.capitalize() for word in rest)


def convert_keys(data: Any) -> Any:
    """Recursively convert dict keys from camelCase to snake_case."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from a JSON file.

    Keys on disk are camelCase. A missing, empty or invalid file yields
    the defaults (environment variables still apply).
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            text = path.read_text()
            if text.strip():
                return Config(**convert_keys(json.loads(text)))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save configuration to a JSON file with camelCase keys."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = convert_to_camel(config.model_dump())
    path.write_text(json.dumps(data, indent=2) + "\n")
