"""Directory pruner for rotated logs.

Walks a single directory (no recursion), skipping dot-files and anything
that is not a regular file, and removes every file the configured matcher
accepts.  In dry-run mode the matching names are only reported.

Per-file failures do not stop the walk; they are collected in the
:class:`PruneReport` and turn the exit code to 1.

Example
-------
>>> from pathlib import Path
>>> pruner = Pruner(Path("/var/log/app"), AgeMatcher(), max_age=7 * DAY)
>>> report = pruner.run()
>>> report.exit_code
0
"""
from __future__ import annotations

import logging
import os
import stat
import time
from dataclasses import dataclass, field
from pathlib import Path

from bunyan_logtools.errors import ConfigurationError
from bunyan_logtools.prune.matchers import Matcher, MatchError

logger = logging.getLogger(__name__)

MINUTE: int = 60
HOUR: int = 60 * MINUTE
DAY: int = 24 * HOUR
WEEK: int = 7 * DAY

DEFAULT_MAX_AGE: int = 3 * DAY


@dataclass
class PruneReport:
    """Outcome of one :meth:`Pruner.run`.

    Attributes
    ----------
    matched:
        Names that matched, in walk order.
    removed:
        Names actually deleted (empty in dry-run mode).
    errors:
        ``(name, message)`` pairs for files that could not be handled.
    """

    directory: Path
    dry_run: bool = False
    matched: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.errors else 0


class Pruner:
    """Deletes (or lists) files in ``directory`` older than ``max_age``.

    Parameters
    ----------
    directory:
        Directory to scan.
    matcher:
        Age rule, see :mod:`bunyan_logtools.prune.matchers`.
    max_age:
        Age in seconds at which a file becomes prunable.
    dry_run:
        Report matches without deleting them.
    """

    def __init__(
        self,
        directory: Path,
        matcher: Matcher,
        max_age: int = DEFAULT_MAX_AGE,
        dry_run: bool = False,
    ) -> None:
        if max_age < 1:
            raise ConfigurationError(f"age {max_age}: too small")
        self._directory = directory
        self._matcher = matcher
        self._max_age = max_age
        self._dry_run = dry_run

    @property
    def directory(self) -> Path:
        return self._directory

    def cutoff(self, now: float | None = None) -> int:
        """Return the newest timestamp that still counts as old enough."""
        current = int(time.time() if now is None else now)
        return current - self._max_age

    def run(self, now: float | None = None) -> PruneReport:
        """Scan the directory once and act on every matching file.

        Raises
        ------
        OSError:
            When the directory itself cannot be opened.
        """
        cutoff = self.cutoff(now)
        report = PruneReport(directory=self._directory, dry_run=self._dry_run)

        with os.scandir(self._directory) as entries:
            names = sorted(entry.name for entry in entries if not entry.name.startswith("."))

        for name in names:
            path = self._directory / name
            try:
                st = path.stat()
            except OSError as exc:
                self._record_error(report, name, f"stat {name}: {exc.strerror or exc}")
                continue

            if not stat.S_ISREG(st.st_mode):
                continue

            try:
                matched = self._matcher.matches(name, st, cutoff)
            except MatchError as exc:
                self._record_error(report, name, str(exc))
                continue
            if not matched:
                continue

            report.matched.append(name)
            if self._dry_run:
                continue

            try:
                path.unlink()
            except OSError as exc:
                self._record_error(report, name, f"{name}: {exc.strerror or exc}")
                continue
            report.removed.append(name)
            logger.info("Pruned %s", path)

        return report

    @staticmethod
    def _record_error(report: PruneReport, name: str, message: str) -> None:
        logger.warning(message)
        report.errors.append((name, message))
