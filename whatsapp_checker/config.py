"""Configuration helpers for the WhatsApp number checker."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv

from .client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT

LOGGER = logging.getLogger(__name__)

API_KEY_ENV = "API_KEY"


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}


@dataclass
class CheckerConfig:
    """Settings passed explicitly to the runners and the API client."""

    api_key: str
    source_number: str
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    delay_seconds: float = 1.0
    reconcile_delay_seconds: float = 0.0
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ConfigurationError(f"{API_KEY_ENV} entry is missing in the environment or .env file")
        if not self.source_number:
            raise ConfigurationError("A source number is required")
        for name in ("timeout_seconds", "delay_seconds", "reconcile_delay_seconds"):
            value = getattr(self, name)
            try:
                number = float(value)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(f"'{name}' must be a non-negative number, got {value!r}") from exc
            if number < 0:
                raise ConfigurationError(f"'{name}' must be a non-negative number, got {value!r}")
            setattr(self, name, number)


def load_configuration(path: Union[str, Path]) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Configuration file '{file_path}' is not valid: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping")
    return data


def load_environment(env_file: Optional[Union[str, Path]] = None) -> None:
    """Populate ``os.environ`` from a ``.env`` file without overriding existing values."""

    if env_file is not None:
        env_path = Path(env_file)
        if not env_path.exists():
            raise ConfigurationError(f"Environment file [{env_path}] couldn't be found")
        load_dotenv(env_path)
        return
    load_dotenv(find_dotenv(usecwd=True))


def build_config(
    *,
    source_number: Optional[str] = None,
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> CheckerConfig:
    """Merge defaults, a settings file, the environment and explicit overrides.

    Later sources win. ``None`` overrides are ignored so unset CLI flags do not
    mask file values.
    """

    environ = os.environ if environ is None else environ
    known = {field.name for field in fields(CheckerConfig)}
    values: Dict[str, Any] = {}

    if config_path is not None:
        file_values = load_configuration(config_path)
        unknown = sorted(set(file_values) - known)
        if unknown:
            LOGGER.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
        values.update({key: value for key, value in file_values.items() if key in known})

    if environ.get(API_KEY_ENV):
        values["api_key"] = environ[API_KEY_ENV]
    if source_number is not None:
        values["source_number"] = source_number
    for key, value in overrides.items():
        if key not in known:
            raise ConfigurationError(f"Unknown configuration option '{key}'")
        if value is not None:
            values[key] = value

    values.setdefault("api_key", "")
    values.setdefault("source_number", "")
    values["source_number"] = str(values["source_number"]).strip()
    return CheckerConfig(**values)
