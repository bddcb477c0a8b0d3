"""
Configuration loading

Reads an optional YAML file, applies SECRETSPAN_* environment overrides
(including values from a .env file) and validates the result.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .errors import ConfigurationError
from .models import EngineConfig, TokenPair

logger = logging.getLogger(__name__)

ENV_PREFIX = "SECRETSPAN_"

# Environment variable suffix -> config field
_ENV_FIELDS = {
    "TOKEN": "token",
    "REMEMBER_PERIOD": "remember_period",
    "EXCLUDE_END": "exclude_end",
    "COPY_SEPARATOR": "copy_separator",
}

_YAML_EXTS = frozenset({".yaml", ".yml"})


def _read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read and parse a YAML config file

    Raises:
        ConfigurationError: on I/O or parse errors
    """
    path = Path(path)
    if path.suffix.lower() not in _YAML_EXTS:
        raise ConfigurationError(
            f"Unsupported config file extension '{path.suffix}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Error reading configuration file: {path}\n  {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError("Top-level configuration content must be a YAML mapping.")
    return raw_data


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    overrides = {}
    for suffix, field in _ENV_FIELDS.items():
        value = env.get(ENV_PREFIX + suffix)
        if value is not None:
            overrides[field] = value
    return overrides


def load_config(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> EngineConfig:
    """
    Build an EngineConfig

    Precedence, lowest first: defaults, YAML file, environment, overrides.

    Args:
        path: Optional YAML config file
        env: Environment mapping, defaults to os.environ after loading .env
        overrides: Explicit values, e.g. from command line options

    Raises:
        ConfigurationError: if the file or the values are invalid
        ScanError: if the token is empty
    """
    if env is None:
        load_dotenv()
        env = os.environ

    data: Dict[str, Any] = {}
    if path:
        data.update(_read_config_file(path))
        logger.debug(f"Loaded configuration from {path}")

    data.update(_env_overrides(env))
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = EngineConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration:\n{e}") from e

    # reject unusable tokens at load time rather than at scan time
    TokenPair.from_token(config.token)
    return config
