"""Merging freshly extracted items into a feed's persisted history."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import feedparser
from bs4 import BeautifulSoup

from .models import DEFAULT_MIN_ITEMS, ExtractedItem, FeedItem

logger = logging.getLogger(__name__)


def to_datetime(value: Optional[time.struct_time]) -> Optional[datetime]:
    """Convert a feedparser timestamp, which is always UTC, to a datetime."""
    if value is None:
        return None
    return datetime(*value[:6], tzinfo=timezone.utc)


def _strip_html(raw_value: str) -> str:
    """Return the text of a description feedparser handed back as HTML."""
    text = BeautifulSoup(raw_value, "html.parser").get_text()
    return re.sub(r"\s+", " ", text).strip()


def read_prior_items(path: Path) -> List[FeedItem]:
    """Read the items of a previously written RSS file.

    A missing file is an empty history. So is a file that cannot be parsed as
    a feed, which is logged but never raised.
    """
    path = Path(path)
    if not path.exists():
        logger.debug("No prior feed at %s", path)
        return []

    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.warning(
            "Prior feed %s is corrupt (%s), treating it as empty", path, exc
        )
        return []

    parsed = feedparser.parse(data)
    if not parsed.bozo and not parsed.version:
        logger.warning(
            "Prior feed %s is not an RSS document, treating it as empty", path
        )
        return []

    items: List[FeedItem] = []
    seen = set()
    for entry in parsed.entries:
        link = (entry.get("link") or "").strip()
        if not link or link in seen:
            continue
        seen.add(link)
        title = entry.get("title") or ""
        if entry.get("title_detail", {}).get("type") == "text/html":
            title = _strip_html(title)
        summary = entry.get("summary")
        if summary:
            summary = _strip_html(summary)
        items.append(
            FeedItem(
                title=title or link,
                link=link,
                description=summary or None,
                pub_date=to_datetime(entry.get("published_parsed")),
            )
        )

    if parsed.bozo:
        if not items:
            logger.warning(
                "Prior feed %s is corrupt (%s), treating it as empty",
                path,
                parsed.get("bozo_exception"),
            )
            return []
        logger.warning(
            "Prior feed %s is malformed (%s), recovered %d items",
            path,
            parsed.get("bozo_exception"),
            len(items),
        )

    logger.debug("Read %d prior items from %s", len(items), path)
    return items


def feed_capacity(fresh_count: int, min_items: int = DEFAULT_MIN_ITEMS) -> int:
    """Maximum number of items a feed keeps after a merge."""
    return max(min_items, 2 * fresh_count)


def _dated_first(items: List[FeedItem]) -> List[FeedItem]:
    dated = [item for item in items if item.pub_date is not None]
    undated = [item for item in items if item.pub_date is None]
    return dated + undated


def _copy(item: FeedItem) -> FeedItem:
    return FeedItem(
        title=item.title,
        link=item.link,
        description=item.description,
        pub_date=item.pub_date,
    )


def _insertion_slots(
    positions: Dict[str, int], fresh: Sequence[ExtractedItem]
) -> List[int]:
    """Index of the prior item each new item is inserted in front of.

    A new item goes ahead of every known item that follows it on the page.
    New items with no known item after them go just behind the last known item
    seen before them, or at the front when there is none. The slots are
    non-decreasing, so new items keep their page order.
    """
    new_count = sum(1 for item in fresh if item.link not in positions)
    following_known: List[Optional[int]] = [None] * new_count

    following: Optional[int] = None
    index = new_count
    for item in reversed(fresh):
        position = positions.get(item.link)
        if position is None:
            index -= 1
            following_known[index] = following
        elif following is None or position < following:
            following = position

    slots: List[int] = []
    preceding = -1
    index = 0
    for item in fresh:
        position = positions.get(item.link)
        if position is not None:
            preceding = max(preceding, position)
            continue
        slot = following_known[index]
        slots.append(preceding + 1 if slot is None else slot)
        index += 1
    return slots


def merge_items(
    prior: Sequence[FeedItem],
    fresh: Sequence[ExtractedItem],
    min_items: int = DEFAULT_MIN_ITEMS,
) -> List[FeedItem]:
    """Combine the prior feed items with the items extracted this run.

    Items already in the feed are refreshed in place and keep their position.
    New items are inserted ahead of the prior items they were extracted ahead
    of, in page order. Undated items then move behind the dated ones, each
    group keeping its position, and the result is truncated to
    ``feed_capacity`` by dropping the last items that are no longer on the
    page.

    Neither input is modified.
    """
    merged: Dict[str, FeedItem] = {}
    for item in prior:
        if item.link not in merged:
            merged[item.link] = _copy(item)
    positions = {link: index for index, link in enumerate(merged)}

    fresh_unique: List[ExtractedItem] = []
    fresh_links = set()
    for item in fresh:
        if item.link not in fresh_links:
            fresh_links.add(item.link)
            fresh_unique.append(item)

    inserts: Dict[int, List[FeedItem]] = {}
    new_items = [item for item in fresh_unique if item.link not in merged]
    for slot, item in zip(_insertion_slots(positions, fresh_unique), new_items):
        inserts.setdefault(slot, []).append(
            FeedItem(
                title=item.title,
                link=item.link,
                description=item.summary,
                pub_date=item.published,
            )
        )

    for item in fresh_unique:
        existing = merged.get(item.link)
        if existing is None:
            continue
        existing.title = item.title
        if item.summary is not None:
            existing.description = item.summary
        if item.published is not None:
            existing.pub_date = item.published

    ordered: List[FeedItem] = []
    for index, item in enumerate(merged.values()):
        ordered.extend(inserts.get(index, ()))
        ordered.append(item)
    ordered.extend(inserts.get(len(merged), ()))

    ordered = _dated_first(ordered)

    capacity = feed_capacity(len(fresh_unique), min_items)
    excess = len(ordered) - capacity
    if excess > 0:
        logger.info(
            "Dropping %d oldest items to keep the feed at %d items", excess, capacity
        )
        kept: List[FeedItem] = []
        for item in reversed(ordered):
            if excess and item.link not in fresh_links:
                excess -= 1
                continue
            kept.append(item)
        kept.reverse()
        ordered = kept
    return ordered
