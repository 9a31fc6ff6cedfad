"""Rules deciding whether a rotated log is old enough to prune.

A file matches when its age, taken either from a ``stat`` timestamp or
from a date embedded in its name, is at or before the cutoff time.
"""
from __future__ import annotations

import os
import time
from datetime import datetime
from enum import Enum
from typing import Protocol


class MatchError(Exception):
    """Raised when a file name parses but cannot be turned into a time."""


class TimeField(str, Enum):
    """Which ``stat`` timestamp measures a file's age."""

    ATIME = "atime"
    MTIME = "mtime"
    CTIME = "ctime"


class Matcher(Protocol):
    def matches(self, name: str, st: os.stat_result, cutoff: int) -> bool:
        ...


class AgeMatcher:
    """Matches files whose chosen timestamp is at or before the cutoff."""

    def __init__(self, field: TimeField = TimeField.MTIME) -> None:
        self._field = field

    @property
    def field(self) -> TimeField:
        return self._field

    def matches(self, name: str, st: os.stat_result, cutoff: int) -> bool:
        seconds = int(getattr(st, f"st_{self._field.value}"))
        return seconds <= cutoff


class FilenameDateMatcher:
    """Matches files whose name starts with a date older than the cutoff.

    The name is parsed with ``strptime`` directives; anything after the
    parsed prefix (such as a ``.gz`` extension) is ignored.  Names that do
    not parse never match.  Fields missing from the format take the
    ``strptime`` defaults.

    Example
    -------
    >>> matcher = FilenameDateMatcher("app.%Y%m%d")
    >>> matcher.parse("app.20240131.log.gz")
    datetime.datetime(2024, 1, 31, 0, 0)
    """

    def __init__(self, fmt: str) -> None:
        self._fmt = fmt

    @property
    def fmt(self) -> str:
        return self._fmt

    def parse(self, name: str) -> datetime | None:
        """Return the local time encoded at the start of ``name``, if any.

        The longest prefix of ``name`` that ``strptime`` accepts wins.
        """
        for end in range(len(name), 0, -1):
            try:
                return datetime.strptime(name[:end], self._fmt)
            except ValueError:
                continue
        return None

    def matches(self, name: str, st: os.stat_result, cutoff: int) -> bool:
        parsed = self.parse(name)
        if parsed is None:
            return False
        try:
            stamp = time.mktime(parsed.timetuple())
        except (OverflowError, ValueError) as exc:
            raise MatchError(f"match {name}: {exc}") from exc
        return stamp <= cutoff
