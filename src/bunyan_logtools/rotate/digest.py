"""Content digests and the ``.meta`` provenance sidecar.

The rotator can hash every byte it reads from the input log (before any
compression) with MD5 and SHA-256, and record the result next to the
output file::

    ifile=/var/log/app/bunyan.log
    len=200000
    md5=...
    sha256=...

Example
-------
>>> digest = ContentDigest()
>>> digest.update(b"abc")
>>> result = digest.finalize()
>>> result.md5
'900150983cd24fb0d6963f7d28e17f72'
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

from bunyan_logtools.errors import DigestError, RotationError

logger = logging.getLogger(__name__)

META_SUFFIX: str = ".meta"


@dataclass(frozen=True)
class DigestResult:
    """Finalized digests of a byte stream.

    Attributes
    ----------
    length:
        Number of bytes hashed.
    md5:
        Lowercase hexadecimal MD5 digest.
    sha256:
        Lowercase hexadecimal SHA-256 digest.
    """

    length: int
    md5: str
    sha256: str


class ContentDigest:
    """MD5 and SHA-256 accumulators fed the same byte sequence.

    The digest can be finalized once; it is never re-initialized.
    """

    def __init__(self) -> None:
        try:
            self._md5 = hashlib.md5(usedforsecurity=False)
            self._sha256 = hashlib.sha256()
        except ValueError as exc:
            raise DigestError(f"digest initialization failed: {exc}") from exc
        self._length = 0
        self._result: DigestResult | None = None

    def update(self, data: bytes) -> None:
        """Feed ``data`` to both accumulators."""
        if self._result is not None:
            raise DigestError("digest already finalized")
        self._md5.update(data)
        self._sha256.update(data)
        self._length += len(data)

    def finalize(self) -> DigestResult:
        """Return the finished digests.  May only be called once."""
        if self._result is not None:
            raise DigestError("digest already finalized")
        self._result = DigestResult(
            length=self._length,
            md5=self._md5.hexdigest(),
            sha256=self._sha256.hexdigest(),
        )
        return self._result

    @property
    def length(self) -> int:
        """Number of bytes fed so far."""
        return self._length

    @property
    def finalized(self) -> bool:
        return self._result is not None


def meta_path_for(output_path: Path) -> Path:
    """Return the sidecar path for ``output_path`` (``<output>.meta``)."""
    return output_path.with_name(output_path.name + META_SUFFIX)


@dataclass(frozen=True)
class MetadataRecord:
    """Provenance record written once per successful rotation."""

    ifile: str
    length: int
    md5: str
    sha256: str

    @classmethod
    def from_digest(cls, ifile: str | Path, digest: DigestResult) -> "MetadataRecord":
        return cls(
            ifile=str(ifile),
            length=digest.length,
            md5=digest.md5,
            sha256=digest.sha256,
        )

    def render(self) -> str:
        """Return the ``key=value`` text of the record, fields in fixed order."""
        return (
            f"ifile={self.ifile}\n"
            f"len={self.length}\n"
            f"md5={self.md5}\n"
            f"sha256={self.sha256}\n"
        )

    def write(self, output_path: Path) -> Path:
        """Write the record next to ``output_path`` and return the sidecar path.

        Raises
        ------
        RotationError:
            When the sidecar cannot be opened or written.
        """
        meta_path = meta_path_for(output_path)
        try:
            with meta_path.open("w", encoding="utf-8", newline="\n") as fh:
                fh.write(self.render())
        except OSError as exc:
            raise RotationError(meta_path, "write", exc) from exc
        logger.info("Wrote metadata %s (%d bytes from %s)", meta_path, self.length, self.ifile)
        return meta_path
