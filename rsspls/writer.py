"""RSS 2.0 serialization of generated feeds."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Optional, Sequence
from xml.etree import ElementTree as ET

from .dates import to_utc
from .files import atomic_write
from .models import FeedConfig, FeedItem

logger = logging.getLogger(__name__)

GENERATOR = "RSS Please"

# Characters XML 1.0 does not allow, even escaped.
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def xml_safe(text: str) -> str:
    return _INVALID_XML_CHARS.sub("", text)


def format_rfc2822(value: datetime) -> str:
    """Format ``value`` the way RSS expects dates, always in GMT."""
    return format_datetime(to_utc(value), usegmt=True)


def _add_text(parent: ET.Element, tag: str, text: str, **attrib: str) -> ET.Element:
    element = ET.SubElement(parent, tag, attrib)
    element.text = xml_safe(text)
    return element


def build_feed_xml(
    config: FeedConfig,
    items: Sequence[FeedItem],
    build_date: Optional[datetime] = None,
) -> bytes:
    """Serialize ``items`` into an RSS 2.0 document.

    ``lastBuildDate`` is the only value that changes between two builds with
    the same inputs; it defaults to the current time.
    """
    if build_date is None:
        build_date = datetime.now(timezone.utc)

    rss = ET.Element("rss", {"version": "2.0"})
    channel = ET.SubElement(rss, "channel")
    _add_text(channel, "title", config.title)
    _add_text(channel, "link", config.url)
    _add_text(channel, "description", f"{config.title} (generated from {config.url})")
    _add_text(channel, "generator", GENERATOR)
    _add_text(channel, "lastBuildDate", format_rfc2822(build_date))

    for item in items:
        node = ET.SubElement(channel, "item")
        _add_text(node, "title", item.title)
        _add_text(node, "link", item.link)
        _add_text(node, "guid", item.guid, isPermaLink="true")
        if item.description:
            _add_text(node, "description", item.description)
        if item.pub_date is not None:
            _add_text(node, "pubDate", format_rfc2822(item.pub_date))

    ET.indent(rss, space="  ")
    return ET.tostring(rss, encoding="utf-8", xml_declaration=True) + b"\n"


def write_feed(path: Path, data: bytes) -> None:
    """Atomically replace the feed at ``path`` with ``data``."""
    atomic_write(path, data)
    logger.info("Wrote feed %s (%d bytes)", path, len(data))
