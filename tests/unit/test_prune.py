"""Tests for the pruner and its matchers."""
from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

import pytest

from bunyan_logtools.errors import ConfigurationError
from bunyan_logtools.prune.matchers import AgeMatcher, FilenameDateMatcher, TimeField
from bunyan_logtools.prune.pruner import DAY, DEFAULT_MAX_AGE, HOUR, Pruner

_NOW = 1_700_000_000


def _touch(path: Path, mtime: float, atime: float | None = None) -> Path:
    path.write_bytes(b"{}\n")
    os.utime(path, (atime if atime is not None else mtime, mtime))
    return path


@pytest.fixture()
def log_dir(tmp_path: Path) -> Path:
    _touch(tmp_path / "old.log.gz", _NOW - 4 * DAY)
    _touch(tmp_path / "new.log.gz", _NOW - 1 * DAY)
    _touch(tmp_path / ".hidden-old", _NOW - 10 * DAY)
    (tmp_path / "olddir").mkdir()
    os.utime(tmp_path / "olddir", (_NOW - 10 * DAY, _NOW - 10 * DAY))
    return tmp_path


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------


class TestAgeMatcher:
    def test_defaults_to_mtime(self) -> None:
        assert AgeMatcher().field is TimeField.MTIME

    def test_boundary_is_inclusive(self, tmp_path: Path) -> None:
        path = _touch(tmp_path / "f", _NOW - DAY)
        assert AgeMatcher().matches("f", path.stat(), _NOW - DAY) is True
        assert AgeMatcher().matches("f", path.stat(), _NOW - DAY - 1) is False

    def test_atime(self, tmp_path: Path) -> None:
        path = _touch(tmp_path / "f", mtime=_NOW, atime=_NOW - 5 * DAY)
        cutoff = _NOW - 3 * DAY
        assert AgeMatcher(TimeField.ATIME).matches("f", path.stat(), cutoff) is True
        assert AgeMatcher(TimeField.MTIME).matches("f", path.stat(), cutoff) is False


class TestFilenameDateMatcher:
    def test_parse_ignores_suffix(self) -> None:
        matcher = FilenameDateMatcher("app.%Y%m%d")
        assert matcher.parse("app.20240131.log.gz") == datetime(2024, 1, 31)

    def test_parse_exact(self) -> None:
        matcher = FilenameDateMatcher("app.%Y-%m-%d")
        assert matcher.parse("app.2024-02-29") == datetime(2024, 2, 29)

    def test_parse_unrelated_name(self) -> None:
        assert FilenameDateMatcher("app.%Y%m%d").parse("notes.txt") is None

    def test_parse_ignores_suffix_with_spaces(self) -> None:
        matcher = FilenameDateMatcher("app.%Y%m%d")
        assert matcher.parse("app.20240131 copy (2).log") == datetime(2024, 1, 31)

    def test_parse_prefers_longest_date(self) -> None:
        matcher = FilenameDateMatcher("app.%Y%m%d%H")
        assert matcher.parse("app.2024013117.log") == datetime(2024, 1, 31, 17)

    def test_matches_old_name(self, tmp_path: Path) -> None:
        path = _touch(tmp_path / "app.20200101.log", _NOW)
        matcher = FilenameDateMatcher("app.%Y%m%d")
        assert matcher.matches(path.name, path.stat(), _NOW) is True

    def test_future_name_not_matched(self, tmp_path: Path) -> None:
        path = _touch(tmp_path / "app.29990101.log", _NOW)
        matcher = FilenameDateMatcher("app.%Y%m%d")
        assert matcher.matches(path.name, path.stat(), _NOW) is False

    def test_unparsable_name_not_matched(self, tmp_path: Path) -> None:
        path = _touch(tmp_path / "README", _NOW - 100 * DAY)
        assert FilenameDateMatcher("app.%Y%m%d").matches("README", path.stat(), _NOW) is False


# ---------------------------------------------------------------------------
# Pruner
# ---------------------------------------------------------------------------


class TestPruner:
    def test_removes_only_old_regular_files(self, log_dir: Path) -> None:
        report = Pruner(log_dir, AgeMatcher()).run(now=_NOW)
        assert report.removed == ["old.log.gz"]
        assert not (log_dir / "old.log.gz").exists()
        assert (log_dir / "new.log.gz").exists()
        assert (log_dir / ".hidden-old").exists()
        assert (log_dir / "olddir").is_dir()
        assert report.exit_code == 0

    def test_dry_run_keeps_files(self, log_dir: Path) -> None:
        report = Pruner(log_dir, AgeMatcher(), dry_run=True).run(now=_NOW)
        assert report.matched == ["old.log.gz"]
        assert report.removed == []
        assert report.dry_run is True
        assert (log_dir / "old.log.gz").exists()

    def test_shorter_age_matches_more(self, log_dir: Path) -> None:
        report = Pruner(log_dir, AgeMatcher(), max_age=12 * HOUR, dry_run=True).run(now=_NOW)
        assert report.matched == ["new.log.gz", "old.log.gz"]

    def test_filename_matcher(self, tmp_path: Path) -> None:
        _touch(tmp_path / "app.20200101.log.gz", _NOW)
        _touch(tmp_path / "app.29990101.log.gz", _NOW)
        _touch(tmp_path / "other.txt", _NOW - 100 * DAY)
        report = Pruner(tmp_path, FilenameDateMatcher("app.%Y%m%d")).run(now=_NOW)
        assert report.removed == ["app.20200101.log.gz"]
        assert (tmp_path / "other.txt").exists()

    def test_broken_symlink_is_reported_and_walk_continues(self, log_dir: Path) -> None:
        (log_dir / "dangling").symlink_to(log_dir / "does-not-exist")
        report = Pruner(log_dir, AgeMatcher()).run(now=_NOW)
        assert [name for name, _ in report.errors] == ["dangling"]
        assert report.removed == ["old.log.gz"]
        assert report.exit_code == 1

    def test_cutoff(self, tmp_path: Path) -> None:
        assert Pruner(tmp_path, AgeMatcher()).cutoff(now=_NOW) == _NOW - DEFAULT_MAX_AGE

    def test_missing_directory_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            Pruner(tmp_path / "missing", AgeMatcher()).run(now=_NOW)

    def test_zero_age_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            Pruner(tmp_path, AgeMatcher(), max_age=0)
