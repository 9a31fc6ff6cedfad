"""YAML configuration for the rotator and pruner."""
from __future__ import annotations

from bunyan_logtools.config.loader import (
    ConfigLoader,
    LogToolsConfig,
    PruneConfig,
    RotateConfig,
)

__all__ = ["ConfigLoader", "LogToolsConfig", "PruneConfig", "RotateConfig"]
