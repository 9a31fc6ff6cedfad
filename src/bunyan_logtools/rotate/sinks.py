"""Output sinks for the rotator.

A sink is the destination of the copied log bytes.  Two variants exist:

- :class:`RawFileSink` writes the bytes straight through to a file.
- :class:`GzipSink` wraps a raw DEFLATE stream in a hand-written gzip
  container (RFC 1952): a fixed 10-byte header, the compressed payload and
  an 8-byte trailer holding the CRC-32 and length of the uncompressed data.

The variant is chosen once per invocation with :func:`open_sink`.

Example
-------
>>> from pathlib import Path
>>> sink = open_sink(Path("/tmp/out.log.gz"), SinkKind.GZIP, level=6)
>>> sink.write(b'{"msg": "hello"}\\n')
17
>>> sink.close()
"""
from __future__ import annotations

import abc
import errno
import logging
import os
import struct
import zlib
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import BinaryIO

from bunyan_logtools.errors import CompressionError, ConfigurationError, RotationError

logger = logging.getLogger(__name__)

LEVEL_DEFAULT: int = zlib.Z_DEFAULT_COMPRESSION
LEVEL_FASTEST: int = zlib.Z_BEST_SPEED
LEVEL_SMALLEST: int = zlib.Z_BEST_COMPRESSION

GZIP_MAGIC: bytes = b"\x1f\x8b"
GZIP_OS_UNIX: int = 0x03
GZIP_MEM_LEVEL: int = 8
GZIP_BUFFER_SIZE: int = 65536


class SinkKind(str, Enum):
    """Selects the output sink variant."""

    RAW = "raw"
    GZIP = "gzip"


def validate_level(level: int) -> int:
    """Return ``level`` if it is a usable gzip compression level.

    Accepted values are :data:`LEVEL_DEFAULT` (``-1``) and the range
    :data:`LEVEL_FASTEST` .. :data:`LEVEL_SMALLEST`.

    Raises
    ------
    ConfigurationError:
        When the level is outside that range.
    """
    if level == LEVEL_DEFAULT or LEVEL_FASTEST <= level <= LEVEL_SMALLEST:
        return level
    raise ConfigurationError(
        f"compression level {level} is out of range "
        f"({LEVEL_FASTEST}..{LEVEL_SMALLEST})"
    )


def gzip_trailer(crc: int, length: int) -> bytes:
    """Return the 8-byte gzip trailer: CRC-32 then length mod 2**32, little-endian."""
    return struct.pack("<II", crc & 0xFFFFFFFF, length & 0xFFFFFFFF)


def _open_output(path: Path, buffered: bool) -> BinaryIO:
    try:
        if buffered:
            return path.open("wb")
        return path.open("wb", buffering=0)
    except OSError as exc:
        raise RotationError(path, "open", exc) from exc


class Sink(abc.ABC):
    """Write-once destination for rotated log bytes.

    A sink is opened by its constructor, receives any number of
    :meth:`write` calls and is finished exactly once, either by
    :meth:`close` (output complete) or :meth:`abort` (output left partial).
    Used as a context manager, a sink that is still open when the block
    exits is closed on success and aborted on error.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._closed = False

    @abc.abstractmethod
    def write(self, data: bytes) -> int:
        """Accept ``data`` and return the number of bytes accepted."""

    @abc.abstractmethod
    def close(self) -> None:
        """Finish the output and release the underlying file."""

    @abc.abstractmethod
    def abort(self) -> None:
        """Release the underlying file without finishing the output."""

    @property
    def path(self) -> Path:
        """The destination file path."""
        return self._path

    @property
    def closed(self) -> bool:
        """``True`` once :meth:`close` or :meth:`abort` has run."""
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError(f"write to closed sink {self._path}")

    def __enter__(self) -> "Sink":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._closed:
            return
        if exc_type is None:
            self.close()
        else:
            self.abort()


class RawFileSink(Sink):
    """Pass-through sink: bytes go to the file unchanged and unbuffered."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._fh = _open_output(path, buffered=False)

    def write(self, data: bytes) -> int:
        self._check_open()
        view = memoryview(data)
        written = 0
        try:
            while written < len(view):
                count = self._fh.write(view[written:])
                if count is None:
                    # Non-blocking descriptor with a full buffer.
                    raise BlockingIOError(errno.EAGAIN, os.strerror(errno.EAGAIN))
                written += count
        except OSError as exc:
            raise RotationError(self._path, "write", exc) from exc
        return written

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._fh.close()
        except OSError as exc:
            raise RotationError(self._path, "close", exc) from exc

    def abort(self) -> None:
        self.close()


class GzipSink(Sink):
    """Streaming gzip encoder built directly on a raw DEFLATE compressor.

    The compressor output is collected in a fixed-size buffer which is
    written to the file every time it fills, so memory use does not grow
    with the size of the input.

    Parameters
    ----------
    path:
        Destination file.  Created or truncated.
    level:
        Compression level, ``-1`` for the zlib default or ``1`` (fastest)
        to ``9`` (smallest output).
    buffer_size:
        Capacity of the output buffer in bytes.
    """

    _HEADER: bytes = GZIP_MAGIC + bytes(
        (
            zlib.DEFLATED,
            0,  # flags
            0, 0, 0, 0,  # mtime
            0,  # xflags
            GZIP_OS_UNIX,
        )
    )

    def __init__(
        self,
        path: Path,
        level: int = LEVEL_DEFAULT,
        buffer_size: int = GZIP_BUFFER_SIZE,
    ) -> None:
        super().__init__(path)
        validate_level(level)
        if buffer_size < 1:
            raise ConfigurationError(f"gzip buffer size {buffer_size} is too small")

        self._buffer_size = buffer_size
        self._buffer = bytearray()
        self._crc = zlib.crc32(b"")
        self._total_in = 0

        self._fh = _open_output(path, buffered=True)
        try:
            # Negative window bits: raw DEFLATE, the container is written here.
            self._compressor = zlib.compressobj(
                level,
                zlib.DEFLATED,
                -zlib.MAX_WBITS,
                GZIP_MEM_LEVEL,
                zlib.Z_DEFAULT_STRATEGY,
            )
        except (ValueError, zlib.error) as exc:
            self._release()
            raise CompressionError(path, "open stream", exc) from exc

        try:
            self._fh.write(self._HEADER)
        except OSError as exc:
            self._release()
            raise RotationError(path, "write", exc) from exc

        logger.debug("Opened gzip stream %s at level %d", path, level)

    # ------------------------------------------------------------------
    # Sink API
    # ------------------------------------------------------------------

    def write(self, data: bytes) -> int:
        """Compress ``data`` into the stream.

        The CRC and length are accumulated over the uncompressed bytes.
        """
        self._check_open()
        try:
            self._emit(self._compressor.compress(data))
        except zlib.error as exc:
            raise CompressionError(self._path, "compress", exc) from exc
        except OSError as exc:
            raise RotationError(self._path, "write", exc) from exc

        self._crc = zlib.crc32(data, self._crc)
        self._total_in += len(data)
        return len(data)

    def close(self) -> None:
        """Finish the DEFLATE stream, append the trailer and close the file."""
        if self._closed:
            return
        try:
            self._emit(self._compressor.flush(zlib.Z_FINISH))
            while self._buffer:
                self._drain(min(len(self._buffer), self._buffer_size))
            self._fh.write(self.trailer)
            self._fh.flush()
        except zlib.error as exc:
            self._release()
            raise CompressionError(self._path, "close", exc) from exc
        except OSError as exc:
            self._release()
            raise RotationError(self._path, "close", exc) from exc

        try:
            self._release()
        except OSError as exc:
            raise RotationError(self._path, "close", exc) from exc
        logger.debug(
            "Closed gzip stream %s after %d input bytes", self._path, self._total_in
        )

    def abort(self) -> None:
        """Close the file as-is; the stream is left without a trailer."""
        if not self._closed:
            self._release()

    # ------------------------------------------------------------------
    # Stream state
    # ------------------------------------------------------------------

    @property
    def crc32(self) -> int:
        """CRC-32 of every uncompressed byte written so far."""
        return self._crc & 0xFFFFFFFF

    @property
    def total_in(self) -> int:
        """Number of uncompressed bytes written so far."""
        return self._total_in

    @property
    def trailer(self) -> bytes:
        """The 8-byte gzip trailer for the data written so far.

        The length field wraps at 32 bits as required by RFC 1952.
        """
        return gzip_trailer(self._crc, self._total_in)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _emit(self, compressed: bytes) -> None:
        """Queue compressor output, writing out every full buffer."""
        self._buffer += compressed
        while len(self._buffer) >= self._buffer_size:
            self._drain(self._buffer_size)

    def _drain(self, length: int) -> None:
        self._fh.write(bytes(self._buffer[:length]))
        del self._buffer[:length]

    def _release(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._compressor = None
        self._buffer.clear()
        self._fh.close()


def open_sink(path: Path, kind: SinkKind, level: int = LEVEL_DEFAULT) -> Sink:
    """Create the sink selected by ``kind`` writing to ``path``.

    Parameters
    ----------
    path:
        Destination file, created or truncated.
    kind:
        :attr:`SinkKind.RAW` or :attr:`SinkKind.GZIP`.
    level:
        Compression level, ignored for raw output.
    """
    if kind is SinkKind.GZIP:
        return GzipSink(path, level=level)
    return RawFileSink(path)
