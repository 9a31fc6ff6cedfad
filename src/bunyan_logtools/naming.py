"""Output file naming and human-readable size parsing.

Output paths given to the rotator are ``strftime`` templates by default,
so a scheduler can run the same command every hour and get a new file
each time::

    bunyan-rotate /var/log/app.log '/var/log/app.%Y%m%d%H.log.gz'

Sizes accept binary-scaled suffixes (``64K``, ``10M``, ``1.5G``).
"""
from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation

from bunyan_logtools.errors import ConfigurationError

FILENAME_MAX: int = 4096

_SCALES: dict[str, int] = {
    "": 1,
    "B": 1,
    "K": 1 << 10,
    "M": 1 << 20,
    "G": 1 << 30,
    "T": 1 << 40,
    "P": 1 << 50,
    "E": 1 << 60,
}

_SIZE_RE = re.compile(r"^\s*(?P<number>\d+(?:\.\d+)?)\s*(?P<unit>[BKMGTPE]?)\s*$", re.IGNORECASE)


def format_output_name(template: str, when: datetime | None = None) -> str:
    """Expand ``strftime`` directives in ``template`` using local time.

    Parameters
    ----------
    template:
        Output path template, e.g. ``app.%Y-%m-%d.log``.
    when:
        Time to format; the current local time when omitted.

    Raises
    ------
    ConfigurationError:
        When the result is empty or longer than :data:`FILENAME_MAX`.
    """
    moment = when or datetime.now()
    name = moment.strftime(template)
    if not name:
        raise ConfigurationError("output file name format failed")
    if len(name.encode("utf-8")) >= FILENAME_MAX:
        raise ConfigurationError("formatted output file name is too long")
    return name


def parse_size(text: str | int) -> int:
    """Parse a byte count such as ``512``, ``64K`` or ``1.5G``.

    Suffixes are binary multiples (``K`` = 1024).  The result must be
    positive.

    Raises
    ------
    ConfigurationError:
        When ``text`` is not a size or is not greater than zero.
    """
    if isinstance(text, int):
        size = text
    else:
        match = _SIZE_RE.match(text)
        if match is None:
            raise ConfigurationError(f"file size {text}: invalid")
        try:
            number = Decimal(match.group("number"))
        except InvalidOperation as exc:
            raise ConfigurationError(f"file size {text}: invalid") from exc
        size = int(number * _SCALES[match.group("unit").upper()])

    if size <= 0:
        raise ConfigurationError(f"file size {text}: too small")
    return size
