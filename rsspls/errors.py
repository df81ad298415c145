"""Exception types raised by rsspls."""

from __future__ import annotations

from typing import Optional


class RssplsError(Exception):
    """Base class for all rsspls errors."""


class ConfigError(RssplsError):
    """The configuration file is missing, malformed or invalid."""


class FetchError(RssplsError):
    """A page could not be retrieved."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        super().__init__(f"unable to fetch {url}: {message}")
        self.url = url
        self.status = status


class ParseError(RssplsError):
    """The HTML document could not be parsed at all."""


class SelectorError(RssplsError):
    """A CSS selector is not valid."""


class WriteError(RssplsError):
    """A feed or cache file could not be written."""
