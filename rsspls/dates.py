"""Parsing of the assorted date strings found on web pages."""

from __future__ import annotations

import enum
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, List, Optional

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)


class DateSource(enum.Enum):
    """Where a raw date string was taken from."""

    ATTRIBUTE = "attribute"
    TEXT = "text"


# Abbreviations dateutil does not resolve on its own, as seconds east of UTC.
TIMEZONE_OFFSETS = {
    "UTC": 0,
    "GMT": 0,
    "Z": 0,
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
    "CET": 1 * 3600,
    "CEST": 2 * 3600,
    "AEST": 10 * 3600,
    "AEDT": 11 * 3600,
}

HUMAN_FORMATS = (
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d %Y",
    "%b. %d, %Y",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%B %d, %Y %I:%M %p",
    "%d %B %Y %H:%M",
)

# dateutil fills missing fields from ``default``; a string that parses
# differently under these two lacks a year, month or day.
_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))

_ORDINAL = re.compile(r"\b(\d{1,2})(st|nd|rd|th)\b", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def to_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime without microseconds.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


def _parse_rfc3339(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _parse_rfc2822(value: str) -> datetime:
    parsed = parsedate_to_datetime(value)
    if parsed is None:
        raise ValueError(f"not an RFC 2822 date: {value!r}")
    return parsed


def _parse_human(value: str) -> datetime:
    cleaned = _ORDINAL.sub(r"\1", value)
    for fmt in HUMAN_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    first, second = (
        dateutil_parser.parse(cleaned, default=default, tzinfos=TIMEZONE_OFFSETS)
        for default in _DEFAULTS
    )
    if first.date() != second.date():
        raise ValueError(f"incomplete date: {value!r}")
    return first


PARSERS: List[Callable[[str], datetime]] = [
    _parse_rfc3339,
    _parse_rfc2822,
    _parse_human,
]


def parse_date(
    raw: Optional[str], source: DateSource = DateSource.TEXT
) -> Optional[datetime]:
    """Parse ``raw`` into an aware UTC datetime, or ``None`` if it is not a date.

    RFC 3339 is tried first, then RFC 2822, then a set of common human
    formats. The first parser to succeed wins.
    """
    if not raw:
        return None
    value = _WHITESPACE.sub(" ", raw).strip()
    if not value:
        return None

    for parse in PARSERS:
        try:
            return to_utc(parse(value))
        except (ValueError, TypeError, OverflowError):
            continue

    if source is DateSource.ATTRIBUTE:
        logger.warning("Unable to parse date attribute %r", value)
    else:
        logger.debug("Unable to parse date text %r", value)
    return None
