"""Copy-and-truncate rotation of a live bunyan log.

A writer process may keep appending to the input log while it is being
copied.  The copy loop therefore never trusts a single empty read: on an
apparent end-of-file it takes an exclusive advisory lock on the input,
reads once more, and only when that second read is also empty does it
finish the output and truncate the input, still under the lock.  The lock
is released immediately afterwards, so the writer is blocked only for that
short window.

This relies on the writer taking the same ``flock`` before appending.

Example
-------
>>> from pathlib import Path
>>> rotator = Rotator(RotateOptions(sink_kind=SinkKind.GZIP, metadata=True))
>>> result = rotator.rotate(Path("/var/log/app.log"), Path("/var/log/app.log.0.gz"))
>>> result.rotated
True
"""
from __future__ import annotations

import fcntl
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Protocol

from bunyan_logtools.errors import ConfigurationError, RotationError
from bunyan_logtools.rotate.digest import ContentDigest, DigestResult, MetadataRecord
from bunyan_logtools.rotate.sinks import (
    LEVEL_DEFAULT,
    Sink,
    SinkKind,
    open_sink,
    validate_level,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE: int = 65536


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------


class FileLock(Protocol):
    """Whole-file exclusive lock shared by convention with the log writer."""

    def acquire(self, fd: int) -> None:
        ...

    def release(self, fd: int) -> None:
        ...


class FlockLock:
    """Advisory ``flock(2)`` lock; blocks without timeout until granted."""

    def acquire(self, fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_EX)

    def release(self, fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_UN)


# ---------------------------------------------------------------------------
# Options and results
# ---------------------------------------------------------------------------


@dataclass
class RotateOptions:
    """Settings for one rotation, fixed before the copy starts.

    Attributes
    ----------
    sink_kind:
        Plain copy or gzip-compressed output.
    level:
        gzip compression level (``-1`` for the zlib default, else 1..9).
    min_size:
        Skip rotation while the input is smaller than this many bytes.
    truncate:
        Truncate the input once it has been copied.  ``False`` leaves the
        input untouched (copy-only mode).
    metadata:
        Hash the copied bytes and write a ``<output>.meta`` sidecar.
    chunk_size:
        Read size for the copy loop.
    """

    sink_kind: SinkKind = SinkKind.RAW
    level: int = LEVEL_DEFAULT
    min_size: int | None = None
    truncate: bool = True
    metadata: bool = False
    chunk_size: int = CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.sink_kind is SinkKind.GZIP:
            validate_level(self.level)
        if self.min_size is not None and self.min_size <= 0:
            raise ConfigurationError(f"file size {self.min_size}: too small")
        if self.chunk_size < 1:
            raise ConfigurationError(f"chunk size {self.chunk_size}: too small")


@dataclass
class RotationResult:
    """Outcome of :meth:`Rotator.rotate`.

    ``rotated`` is ``False`` when the input was below the size threshold;
    in that case nothing was created and the input was not modified.
    """

    rotated: bool
    input_path: Path
    output_path: Path
    bytes_copied: int = 0
    metadata_path: Path | None = None
    digest: DigestResult | None = field(default=None)


# ---------------------------------------------------------------------------
# Copy loop
# ---------------------------------------------------------------------------


def _read(source: BinaryIO, size: int, path: Path) -> bytes:
    try:
        return source.read(size) or b""
    except OSError as exc:
        raise RotationError(path, "read", exc) from exc


def copy_and_truncate(
    source: BinaryIO,
    sink: Sink,
    *,
    path: Path,
    truncate: bool,
    digest: ContentDigest | None = None,
    lock: FileLock | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Drain ``source`` into ``sink`` and return the number of bytes copied.

    The sink is closed, and ``source`` truncated when ``truncate`` is set,
    while the lock confirming end-of-file is held.

    Parameters
    ----------
    source:
        Unbuffered input opened for reading (and writing when truncating).
    sink:
        Open output sink; closed by this function on success.
    path:
        Input path, used in error messages.
    truncate:
        Truncate ``source`` to zero length after the final read.
    digest:
        Optional accumulator fed every chunk before it reaches the sink.
    lock:
        Lock used around the end-of-file confirmation; :class:`FlockLock`
        when omitted.
    chunk_size:
        Maximum bytes per read.

    Raises
    ------
    RotationError:
        On any read, write, lock or truncate failure.
    """
    lock = lock or FlockLock()
    fd = source.fileno()
    copied = 0

    while True:
        chunk = _read(source, chunk_size, path)
        if not chunk:
            try:
                lock.acquire(fd)
            except OSError as exc:
                raise RotationError(path, "lock", exc) from exc
            try:
                chunk = _read(source, chunk_size, path)
                if not chunk:
                    sink.close()
                    if truncate:
                        try:
                            source.truncate(0)
                        except OSError as exc:
                            raise RotationError(path, "truncate", exc) from exc
            finally:
                try:
                    lock.release(fd)
                except OSError as exc:
                    raise RotationError(path, "unlock", exc) from exc

            if not chunk:
                logger.debug("Confirmed end of %s under lock", path)
                break
            logger.debug("%s grew after apparent end of file; continuing", path)

        if digest is not None:
            digest.update(chunk)
        sink.write(chunk)
        copied += len(chunk)

    return copied


# ---------------------------------------------------------------------------
# Rotator
# ---------------------------------------------------------------------------


class Rotator:
    """Rotates a single log file per :meth:`rotate` call.

    Parameters
    ----------
    options:
        Rotation settings.
    lock:
        Lock implementation for the end-of-file handshake with the writer.
    """

    def __init__(self, options: RotateOptions, lock: FileLock | None = None) -> None:
        self._options = options
        self._lock = lock or FlockLock()

    @property
    def options(self) -> RotateOptions:
        return self._options

    def rotate(
        self,
        input_path: Path,
        output_path: Path,
        ifile: str | None = None,
    ) -> RotationResult:
        """Copy ``input_path`` to ``output_path`` and optionally truncate it.

        ``ifile`` is the input name recorded in the metadata sidecar; it
        defaults to ``str(input_path)``.  Pass the name exactly as the user
        spelled it to keep prefixes such as ``./`` that :class:`Path` drops.

        Returns
        -------
        RotationResult
            ``rotated=False`` when the input is below ``min_size``.

        Raises
        ------
        RotationError:
            On any I/O, locking or compression failure.  A partial output
            file may be left behind.
        """
        opts = self._options
        mode = "r+b" if opts.truncate else "rb"
        try:
            source = input_path.open(mode, buffering=0)
        except OSError as exc:
            raise RotationError(input_path, "open", exc) from exc

        with source:
            if opts.min_size is not None:
                try:
                    size = os.fstat(source.fileno()).st_size
                except OSError as exc:
                    raise RotationError(input_path, "stat", exc) from exc
                if size < opts.min_size:
                    logger.info(
                        "%s is %d bytes, below %d; not rotating",
                        input_path,
                        size,
                        opts.min_size,
                    )
                    return RotationResult(
                        rotated=False, input_path=input_path, output_path=output_path
                    )

            digest = ContentDigest() if opts.metadata else None

            with open_sink(output_path, opts.sink_kind, opts.level) as sink:
                copied = copy_and_truncate(
                    source,
                    sink,
                    path=input_path,
                    truncate=opts.truncate,
                    digest=digest,
                    lock=self._lock,
                    chunk_size=opts.chunk_size,
                )

        logger.info(
            "Rotated %s to %s (%d bytes, %s%s)",
            input_path,
            output_path,
            copied,
            opts.sink_kind.value,
            ", truncated" if opts.truncate else "",
        )

        result = RotationResult(
            rotated=True,
            input_path=input_path,
            output_path=output_path,
            bytes_copied=copied,
        )
        if digest is not None:
            result.digest = digest.finalize()
            record = MetadataRecord.from_digest(
                ifile if ifile is not None else input_path, result.digest
            )
            result.metadata_path = record.write(output_path)
        return result
