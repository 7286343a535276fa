"""YAML configuration for comparison options and severity policy."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import Field, ValidationError

from aumai_driftwatch.base import CamelModel
from aumai_driftwatch.errors import ConfigError
from aumai_driftwatch.models import CompareOptions, SeverityConfig

__all__ = ["DEFAULT_BASELINE_PATH", "DEFAULT_CONFIG_FILENAME", "BaselineSettings", "DriftConfig", "load_config"]

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "driftwatch.yaml"
DEFAULT_BASELINE_PATH = "bellwether-baseline.json"


class BaselineSettings(CamelModel):
    path: str = Field(default=DEFAULT_BASELINE_PATH, description="Default baseline file")
    compare: CompareOptions = Field(default_factory=CompareOptions)
    severity: SeverityConfig = Field(default_factory=SeverityConfig)


class DriftConfig(CamelModel):
    """Top-level driftwatch configuration file."""

    baseline: BaselineSettings = Field(default_factory=BaselineSettings)


def load_config(path: Path | str | None = None) -> DriftConfig:
    """Load a :class:`DriftConfig` from YAML.

    Args:
        path: Config file to read. When omitted, ``driftwatch.yaml`` in the
            working directory is used if present, otherwise defaults apply.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: The file is missing (when given explicitly), unreadable,
            not valid YAML, or does not match the config schema.
    """
    if path is None:
        candidate = Path(DEFAULT_CONFIG_FILENAME)
        if not candidate.is_file():
            logger.debug("No %s found; using default configuration", DEFAULT_CONFIG_FILENAME)
            return DriftConfig()
        config_path = candidate
    else:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}", config_path)

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}", config_path) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config file {config_path}: {exc}", config_path) from exc

    if data is None:
        return DriftConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping", config_path)

    try:
        config = DriftConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file {config_path}:\n{exc}", config_path) from exc

    logger.debug("Loaded configuration from %s", config_path)
    return config
