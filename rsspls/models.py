"""Shared data models for rsspls."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

DEFAULT_MIN_ITEMS = 50


@dataclass(frozen=True)
class FeedConfig:
    """Configuration for a single generated feed."""

    title: str
    filename: str
    url: str
    item_selector: str
    heading_selector: str
    summary_selector: Optional[str] = None
    date_selector: Optional[str] = None
    min_items: int = DEFAULT_MIN_ITEMS


@dataclass(frozen=True)
class CacheEntry:
    """Validators remembered from the last fresh response for a URL."""

    url: str
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    content_hash: Optional[str] = None


@dataclass
class ExtractedItem:
    """An item scraped from the live page during this run."""

    title: str
    link: str
    summary: Optional[str] = None
    published: Optional[datetime] = None


@dataclass
class FeedItem:
    """An item as persisted in the RSS output file."""

    title: str
    link: str
    description: Optional[str] = None
    pub_date: Optional[datetime] = None

    @property
    def guid(self) -> str:
        return self.link


@dataclass
class Fresh:
    """A full response body was received."""

    body: bytes
    url: str
    etag: Optional[str]
    last_modified: Optional[str]
    content_hash: str
    changed: bool = True


@dataclass
class NotModified:
    """The server answered 304; the previous output is still current."""

    url: str


FetchResult = Union[Fresh, NotModified]
