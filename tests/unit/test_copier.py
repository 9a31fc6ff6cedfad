"""Tests for the copy-and-truncate loop and the Rotator."""
from __future__ import annotations

import errno
import gzip
from pathlib import Path

import pytest

from bunyan_logtools.errors import ConfigurationError, RotationError
from bunyan_logtools.rotate.copier import (
    FlockLock,
    RotateOptions,
    Rotator,
    copy_and_truncate,
)
from bunyan_logtools.rotate.digest import ContentDigest
from bunyan_logtools.rotate.sinks import RawFileSink, SinkKind

_ABC_MD5 = "900150983cd24fb0d6963f7d28e17f72"
_ABC_SHA256 = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


class RecordingLock(FlockLock):
    """Real flock that records calls and the input size at each release."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.calls: list[str] = []
        self.sizes_at_release: list[int] = []

    def acquire(self, fd: int) -> None:
        self.calls.append("acquire")
        super().acquire(fd)

    def release(self, fd: int) -> None:
        self.calls.append("release")
        self.sizes_at_release.append(self.path.stat().st_size)
        super().release(fd)


class LateWriterLock(RecordingLock):
    """Appends to the log just before the first lock, like a racing writer."""

    def __init__(self, path: Path, late: bytes) -> None:
        super().__init__(path)
        self.late = late
        self.appended = False

    def acquire(self, fd: int) -> None:
        if not self.appended:
            with self.path.open("ab") as fh:
                fh.write(self.late)
            self.appended = True
        super().acquire(fd)


class FailingLock:
    def acquire(self, fd: int) -> None:
        raise OSError(errno.ENOLCK, "No locks available")

    def release(self, fd: int) -> None:  # pragma: no cover - never reached
        raise AssertionError("release without acquire")


@pytest.fixture()
def input_log(tmp_path: Path) -> Path:
    path = tmp_path / "bunyan.log"
    path.write_bytes(b'{"level":30,"msg":"hello"}\n' * 100)
    return path


# ---------------------------------------------------------------------------
# RotateOptions
# ---------------------------------------------------------------------------


class TestRotateOptions:
    def test_defaults(self) -> None:
        opts = RotateOptions()
        assert opts.sink_kind is SinkKind.RAW
        assert opts.truncate is True
        assert opts.metadata is False
        assert opts.min_size is None
        assert opts.chunk_size == 65536

    def test_zero_min_size_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            RotateOptions(min_size=0)

    def test_bad_gzip_level_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            RotateOptions(sink_kind=SinkKind.GZIP, level=12)

    def test_level_ignored_for_raw(self) -> None:
        assert RotateOptions(sink_kind=SinkKind.RAW, level=0).level == 0

    def test_zero_chunk_size_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            RotateOptions(chunk_size=0)


# ---------------------------------------------------------------------------
# copy_and_truncate
# ---------------------------------------------------------------------------


class TestCopyAndTruncate:
    def test_copies_and_truncates(self, tmp_path: Path, input_log: Path) -> None:
        original = input_log.read_bytes()
        out = tmp_path / "out.log"
        with input_log.open("r+b", buffering=0) as source:
            sink = RawFileSink(out)
            copied = copy_and_truncate(source, sink, path=input_log, truncate=True)
        assert copied == len(original)
        assert sink.closed is True
        assert out.read_bytes() == original
        assert input_log.stat().st_size == 0

    def test_small_chunks_feed_digest(self, tmp_path: Path, input_log: Path) -> None:
        original = input_log.read_bytes()
        digest = ContentDigest()
        with input_log.open("rb", buffering=0) as source:
            copy_and_truncate(
                source,
                RawFileSink(tmp_path / "out.log"),
                path=input_log,
                truncate=False,
                digest=digest,
                chunk_size=7,
            )
        assert digest.length == len(original)
        assert input_log.read_bytes() == original

    def test_lock_taken_once_for_quiet_file(self, tmp_path: Path, input_log: Path) -> None:
        lock = RecordingLock(input_log)
        with input_log.open("r+b", buffering=0) as source:
            copy_and_truncate(
                source, RawFileSink(tmp_path / "out.log"), path=input_log, truncate=True, lock=lock
            )
        assert lock.calls == ["acquire", "release"]

    def test_truncation_happens_before_unlock(self, tmp_path: Path, input_log: Path) -> None:
        lock = RecordingLock(input_log)
        with input_log.open("r+b", buffering=0) as source:
            copy_and_truncate(
                source, RawFileSink(tmp_path / "out.log"), path=input_log, truncate=True, lock=lock
            )
        assert lock.sizes_at_release == [0]

    def test_sink_closed_before_unlock(self, tmp_path: Path, input_log: Path) -> None:
        out = tmp_path / "out.log.gz"
        seen: list[bytes] = []

        class PeekLock(FlockLock):
            def release(self, fd: int) -> None:
                seen.append(gzip.decompress(out.read_bytes()))
                super().release(fd)

        original = input_log.read_bytes()
        rotator = Rotator(RotateOptions(sink_kind=SinkKind.GZIP), lock=PeekLock())
        rotator.rotate(input_log, out)
        assert seen == [original]

    def test_data_appended_after_apparent_eof_is_kept(
        self, tmp_path: Path, input_log: Path
    ) -> None:
        original = input_log.read_bytes()
        late = b'{"level":40,"msg":"written during rotation"}\n'
        lock = LateWriterLock(input_log, late)
        out = tmp_path / "out.log"
        with input_log.open("r+b", buffering=0) as source:
            copied = copy_and_truncate(
                source, RawFileSink(out), path=input_log, truncate=True, lock=lock
            )
        assert out.read_bytes() == original + late
        assert copied == len(original) + len(late)
        assert input_log.stat().st_size == 0
        assert lock.calls == ["acquire", "release", "acquire", "release"]
        assert lock.sizes_at_release[0] == len(original) + len(late)

    def test_lock_failure_is_fatal(self, tmp_path: Path, input_log: Path) -> None:
        original = input_log.read_bytes()
        with input_log.open("r+b", buffering=0) as source:
            with pytest.raises(RotationError) as exc_info:
                copy_and_truncate(
                    source,
                    RawFileSink(tmp_path / "out.log"),
                    path=input_log,
                    truncate=True,
                    lock=FailingLock(),
                )
        assert exc_info.value.operation == "lock"
        assert "No locks available" in str(exc_info.value)
        assert input_log.read_bytes() == original


# ---------------------------------------------------------------------------
# Rotator
# ---------------------------------------------------------------------------


class TestRotator:
    def test_raw_rotation(self, tmp_path: Path, input_log: Path) -> None:
        original = input_log.read_bytes()
        out = tmp_path / "out.log"
        result = Rotator(RotateOptions()).rotate(input_log, out)
        assert result.rotated is True
        assert result.bytes_copied == len(original)
        assert result.metadata_path is None
        assert out.read_bytes() == original
        assert input_log.read_bytes() == b""

    def test_copy_only_leaves_input(self, tmp_path: Path, input_log: Path) -> None:
        original = input_log.read_bytes()
        out = tmp_path / "out.log.gz"
        Rotator(RotateOptions(sink_kind=SinkKind.GZIP, truncate=False)).rotate(input_log, out)
        assert input_log.read_bytes() == original
        assert gzip.decompress(out.read_bytes()) == original

    def test_below_min_size_does_nothing(self, tmp_path: Path, input_log: Path) -> None:
        original = input_log.read_bytes()
        out = tmp_path / "out.log"
        opts = RotateOptions(min_size=len(original) + 1, metadata=True)
        result = Rotator(opts).rotate(input_log, out)
        assert result.rotated is False
        assert not out.exists()
        assert not (tmp_path / "out.log.meta").exists()
        assert input_log.read_bytes() == original

    def test_at_min_size_rotates(self, tmp_path: Path, input_log: Path) -> None:
        size = input_log.stat().st_size
        result = Rotator(RotateOptions(min_size=size)).rotate(input_log, tmp_path / "out.log")
        assert result.rotated is True
        assert input_log.stat().st_size == 0

    def test_metadata_for_abc(self, tmp_path: Path) -> None:
        source = tmp_path / "abc.log"
        source.write_bytes(b"abc")
        out = tmp_path / "abc.out"
        result = Rotator(RotateOptions(metadata=True)).rotate(source, out)
        assert result.metadata_path == tmp_path / "abc.out.meta"
        lines = result.metadata_path.read_text(encoding="utf-8").splitlines()
        assert lines == [
            f"ifile={source}",
            "len=3",
            f"md5={_ABC_MD5}",
            f"sha256={_ABC_SHA256}",
        ]

    def test_metadata_records_ifile_as_given(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        Path("a.log").write_bytes(b"abc")
        result = Rotator(RotateOptions(metadata=True)).rotate(
            Path("a.log"), Path("a.out"), ifile="./a.log"
        )
        assert result.metadata_path is not None
        assert result.metadata_path.read_text(encoding="utf-8").startswith("ifile=./a.log\n")

    def test_empty_input_gzip(self, tmp_path: Path) -> None:
        source = tmp_path / "empty.log"
        source.write_bytes(b"")
        out = tmp_path / "empty.log.gz"
        result = Rotator(RotateOptions(sink_kind=SinkKind.GZIP, metadata=True)).rotate(source, out)
        assert result.bytes_copied == 0
        assert gzip.decompress(out.read_bytes()) == b""
        assert result.digest is not None
        assert result.digest.length == 0
        assert "len=0\n" in (tmp_path / "empty.log.gz.meta").read_text(encoding="utf-8")

    def test_large_pattern_scenario(self, tmp_path: Path) -> None:
        pattern = b'{"name":"svc","level":30,"msg":"tick"}\n'
        payload = (pattern * (200_000 // len(pattern) + 1))[:200_000]
        source = tmp_path / "bunyan.log"
        source.write_bytes(payload)
        out = tmp_path / "bunyan.log.0.gz"

        opts = RotateOptions(sink_kind=SinkKind.GZIP, truncate=True, metadata=True)
        result = Rotator(opts).rotate(source, out)

        assert gzip.decompress(out.read_bytes()) == payload
        assert source.stat().st_size == 0
        meta = (tmp_path / "bunyan.log.0.gz.meta").read_text(encoding="utf-8")
        assert "len=200000\n" in meta
        assert result.digest is not None
        assert f"md5={result.digest.md5}\n" in meta
        assert f"sha256={result.digest.sha256}\n" in meta
        assert out.stat().st_size < len(payload)

    def test_missing_input_raises(self, tmp_path: Path) -> None:
        out = tmp_path / "out.log"
        with pytest.raises(RotationError) as exc_info:
            Rotator(RotateOptions()).rotate(tmp_path / "nope.log", out)
        assert exc_info.value.operation == "open"
        assert not out.exists()

    def test_unwritable_output_keeps_input(self, tmp_path: Path, input_log: Path) -> None:
        original = input_log.read_bytes()
        with pytest.raises(RotationError):
            Rotator(RotateOptions()).rotate(input_log, tmp_path / "missing" / "out.log")
        assert input_log.read_bytes() == original

    def test_options_property(self) -> None:
        opts = RotateOptions(metadata=True)
        assert Rotator(opts).options is opts
