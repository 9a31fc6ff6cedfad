"""Tool configuration loader with Pydantic v2 validation.

Loads and validates an optional ``logtools.yaml`` file into a typed
:class:`LogToolsConfig` object.  Command-line flags override anything set
here.  Unknown keys are allowed so newer files keep working with older
installs.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load_string("rotate:\\n  compress: true\\n  level: 9\\n")
>>> config.rotate.level
9
"""
from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from bunyan_logtools.errors import ConfigurationError
from bunyan_logtools.naming import parse_size
from bunyan_logtools.prune.pruner import DEFAULT_MAX_AGE
from bunyan_logtools.rotate.copier import CHUNK_SIZE


def _parse_yaml(text: str) -> dict[str, object]:
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError("top level must be a mapping")
    return raw


class RotateConfig(BaseModel):
    """Defaults for the rotator."""

    model_config = {"extra": "allow"}

    compress: bool = Field(default=False)
    level: int | None = Field(default=None, ge=-1, le=9)
    min_size: int | None = Field(default=None)
    truncate: bool = Field(default=True)
    metadata: bool = Field(default=False)
    format_output: bool = Field(default=True)
    chunk_size: int = Field(default=CHUNK_SIZE, ge=1)

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: int | None) -> int | None:
        if value == 0:
            raise ValueError("level 0 stores without compression; use 1..9 or -1")
        return value

    @field_validator("min_size", mode="before")
    @classmethod
    def validate_min_size(cls, value: object) -> int | None:
        if value is None:
            return None
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return parse_size(value)
        raise ValueError(f"min_size must be a size such as 10M, not {value!r}")


class PruneConfig(BaseModel):
    """Defaults for the pruner."""

    model_config = {"extra": "allow"}

    time_field: Literal["atime", "mtime", "ctime"] = Field(default="mtime")
    max_age_seconds: int = Field(default=DEFAULT_MAX_AGE, ge=1)
    filename_format: str | None = Field(default=None)
    dry_run: bool = Field(default=False)


class LogToolsConfig(BaseModel):
    """Top-level configuration schema.

    All sections are optional and fall back to the built-in defaults.
    """

    model_config = {"extra": "allow"}

    version: str = Field(default="1")
    rotate: RotateConfig = Field(default_factory=RotateConfig)
    prune: PruneConfig = Field(default_factory=PruneConfig)


class ConfigLoader:
    """Loads and validates logtools YAML configuration."""

    def load(self, config_path: Path) -> LogToolsConfig:
        """Load and validate a YAML configuration file.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ConfigurationError:
            When the file is not valid YAML.
        ValueError:
            When the YAML content fails Pydantic validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw = _parse_yaml(fh.read())

        return LogToolsConfig.model_validate(raw)

    def load_string(self, yaml_content: str) -> LogToolsConfig:
        """Load and validate a YAML string directly."""
        raw = _parse_yaml(yaml_content)
        return LogToolsConfig.model_validate(raw)

    def defaults(self) -> LogToolsConfig:
        """Return a configuration with all defaults applied."""
        return LogToolsConfig()
