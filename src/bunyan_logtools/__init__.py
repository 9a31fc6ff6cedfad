"""bunyan-logtools — rotation and pruning for bunyan (NDJSON) log files.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> from pathlib import Path
>>> import bunyan_logtools as blt
>>> options = blt.RotateOptions(sink_kind=blt.SinkKind.GZIP, metadata=True)
>>> result = blt.Rotator(options).rotate(Path("app.log"), Path("app.log.0.gz"))
>>> result.digest.length == result.bytes_copied
True
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from bunyan_logtools.errors import (
    CompressionError,
    ConfigurationError,
    DigestError,
    LogToolsError,
    RotationError,
)

# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------
from bunyan_logtools.rotate.copier import (
    FileLock,
    FlockLock,
    RotateOptions,
    RotationResult,
    Rotator,
    copy_and_truncate,
)
from bunyan_logtools.rotate.digest import ContentDigest, DigestResult, MetadataRecord
from bunyan_logtools.rotate.sinks import GzipSink, RawFileSink, Sink, SinkKind, open_sink

# ---------------------------------------------------------------------------
# Pruning
# ---------------------------------------------------------------------------
from bunyan_logtools.prune.matchers import AgeMatcher, FilenameDateMatcher, TimeField
from bunyan_logtools.prune.pruner import PruneReport, Pruner

# ---------------------------------------------------------------------------
# Configuration and naming
# ---------------------------------------------------------------------------
from bunyan_logtools.config.loader import ConfigLoader, LogToolsConfig
from bunyan_logtools.naming import format_output_name, parse_size

__all__ = [
    "__version__",
    # Errors
    "CompressionError",
    "ConfigurationError",
    "DigestError",
    "LogToolsError",
    "RotationError",
    # Rotation
    "ContentDigest",
    "DigestResult",
    "FileLock",
    "FlockLock",
    "GzipSink",
    "MetadataRecord",
    "RawFileSink",
    "RotateOptions",
    "RotationResult",
    "Rotator",
    "Sink",
    "SinkKind",
    "copy_and_truncate",
    "open_sink",
    # Pruning
    "AgeMatcher",
    "FilenameDateMatcher",
    "PruneReport",
    "Pruner",
    "TimeField",
    # Configuration and naming
    "ConfigLoader",
    "LogToolsConfig",
    "format_output_name",
    "parse_size",
]
