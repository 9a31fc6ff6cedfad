"""Copy-and-truncate rotation of live bunyan logs.

Provides the output sinks (plain and gzip), the locked copy loop, and the
digest/metadata recorder.
"""
from __future__ import annotations

from bunyan_logtools.rotate.copier import (
    CHUNK_SIZE,
    FileLock,
    FlockLock,
    RotateOptions,
    RotationResult,
    Rotator,
    copy_and_truncate,
)
from bunyan_logtools.rotate.digest import (
    ContentDigest,
    DigestResult,
    MetadataRecord,
    meta_path_for,
)
from bunyan_logtools.rotate.sinks import (
    GzipSink,
    RawFileSink,
    Sink,
    SinkKind,
    gzip_trailer,
    open_sink,
    validate_level,
)

__all__ = [
    "CHUNK_SIZE",
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
    "gzip_trailer",
    "meta_path_for",
    "open_sink",
    "validate_level",
]
