"""Age-based pruning of rotated log files."""
from __future__ import annotations

from bunyan_logtools.prune.matchers import (
    AgeMatcher,
    FilenameDateMatcher,
    Matcher,
    MatchError,
    TimeField,
)
from bunyan_logtools.prune.pruner import (
    DAY,
    DEFAULT_MAX_AGE,
    HOUR,
    MINUTE,
    WEEK,
    PruneReport,
    Pruner,
)

__all__ = [
    "AgeMatcher",
    "DAY",
    "DEFAULT_MAX_AGE",
    "FilenameDateMatcher",
    "HOUR",
    "MINUTE",
    "MatchError",
    "Matcher",
    "PruneReport",
    "Pruner",
    "TimeField",
    "WEEK",
]
