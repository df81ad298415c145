"""High-level orchestration: one pipeline per configured feed."""

from __future__ import annotations

import concurrent.futures
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import requests

from .cache import CACHE_FILENAME, CacheStore
from .config import DEFAULT_CONCURRENCY, DEFAULT_TIMEOUT
from .errors import ParseError, RssplsError
from .extract import ExtractionResult, extract_items, parse_document
from .fetcher import CONNECT_TIMEOUT, build_session, fetch_page
from .models import FeedConfig, NotModified
from .sync import merge_items, read_prior_items
from .writer import build_feed_xml, write_feed

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    UPDATED = "updated"
    NOT_MODIFIED = "not-modified"
    FAILED = "failed"


@dataclass
class FeedReport:
    """What happened to one feed during a run."""

    feed: FeedConfig
    outcome: Outcome
    items: int = 0
    skipped: int = 0
    error: Optional[str] = None


@dataclass
class RunConfig:
    """Runtime options for executing a run."""

    feeds: List[FeedConfig]
    output_dir: str
    cache_dir: Optional[str] = None
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT
    force: bool = False


@dataclass
class RunResult:
    """Reports for every feed, in configuration order."""

    reports: List[FeedReport] = field(default_factory=list)

    @property
    def failed(self) -> List[FeedReport]:
        return [r for r in self.reports if r.outcome is Outcome.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed


def process_feed(
    feed: FeedConfig,
    output_dir: Path,
    session: requests.Session,
    cache: CacheStore,
    timeout: float = DEFAULT_TIMEOUT,
    force: bool = False,
    build_date: Optional[datetime] = None,
) -> FeedReport:
    """Fetch, extract, merge and write a single feed.

    Errors specific to this feed propagate to the caller.
    """
    output_path = output_dir / feed.filename
    logger.info("Processing feed '%s' (%s)", feed.title, feed.url)

    entry = None
    if force:
        logger.debug("Ignoring cached validators for %s", feed.url)
    elif not output_path.exists():
        logger.debug(
            "No output at %s, fetching %s unconditionally", output_path, feed.url
        )
    else:
        entry = cache.lookup(feed.url)

    result = fetch_page(
        session, feed.url, entry, timeout=(min(CONNECT_TIMEOUT, timeout), timeout)
    )
    if isinstance(result, NotModified):
        logger.info(
            "Feed '%s' unchanged, leaving %s untouched", feed.title, output_path
        )
        return FeedReport(feed=feed, outcome=Outcome.NOT_MODIFIED)

    try:
        document = parse_document(result.body)
    except ParseError as exc:
        logger.warning("%s; treating %s as an empty page", exc, feed.url)
        extraction = ExtractionResult()
    else:
        extraction = extract_items(document, result.url, feed)

    prior = read_prior_items(output_path)
    items = merge_items(prior, extraction.items, min_items=feed.min_items)
    write_feed(output_path, build_feed_xml(feed, items, build_date))
    cache.record(feed.url, result.etag, result.last_modified, result.content_hash)

    logger.info(
        "Feed '%s': %d extracted, %d prior, %d written",
        feed.title,
        len(extraction.items),
        len(prior),
        len(items),
    )
    return FeedReport(
        feed=feed,
        outcome=Outcome.UPDATED,
        items=len(items),
        skipped=extraction.skipped,
    )


def execute(
    config: RunConfig,
    session: Optional[requests.Session] = None,
    cache: Optional[CacheStore] = None,
) -> RunResult:
    """Process every configured feed and return per-feed reports.

    A failing feed is logged and reported; it never stops the others.
    """
    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    if cache is None:
        if config.cache_dir:
            cache = CacheStore.load(Path(config.cache_dir) / CACHE_FILENAME)
        else:
            cache = CacheStore()
    if session is None:
        session = build_session()

    def run_one(feed: FeedConfig) -> FeedReport:
        try:
            return process_feed(
                feed,
                output_dir,
                session,
                cache,
                timeout=config.timeout,
                force=config.force,
            )
        except RssplsError as exc:
            logger.error("Feed '%s' failed: %s", feed.title, exc)
            return FeedReport(feed=feed, outcome=Outcome.FAILED, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error while processing feed '%s'", feed.title)
            return FeedReport(feed=feed, outcome=Outcome.FAILED, error=repr(exc))

    reports: Dict[str, FeedReport] = {}
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=max(1, config.concurrency)
    ) as executor:
        future_to_feed = {executor.submit(run_one, feed): feed for feed in config.feeds}
        for future in concurrent.futures.as_completed(future_to_feed):
            report = future.result()
            reports[report.feed.filename] = report

    try:
        cache.save()
    except RssplsError as exc:
        logger.error("Unable to save HTTP cache: %s", exc)

    result = RunResult(reports=[reports[feed.filename] for feed in config.feeds])
    logger.info(
        "Run complete: %d updated, %d not modified, %d failed",
        sum(r.outcome is Outcome.UPDATED for r in result.reports),
        sum(r.outcome is Outcome.NOT_MODIFIED for r in result.reports),
        len(result.failed),
    )
    return result
