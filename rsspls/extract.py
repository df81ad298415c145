"""Extraction of feed items from HTML using CSS selectors."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union
from urllib.parse import urljoin

import soupsieve
from bs4 import BeautifulSoup, ParserRejectedMarkup
from bs4.element import Tag

from .dates import DateSource, parse_date
from .errors import ParseError, SelectorError
from .models import ExtractedItem, FeedConfig
from .writer import xml_safe

logger = logging.getLogger(__name__)

DATE_ATTRIBUTES = ("datetime", "content")

_WHITESPACE = re.compile(r"\s+")


@dataclass
class ExtractionResult:
    """Items found on a page plus the number of candidates that were dropped."""

    items: List[ExtractedItem] = field(default_factory=list)
    skipped: int = 0


def parse_document(body: Union[bytes, str]) -> BeautifulSoup:
    """Parse an HTML document, letting BeautifulSoup detect the encoding."""
    try:
        return BeautifulSoup(body, "html.parser")
    except ParserRejectedMarkup as exc:
        raise ParseError(f"unable to parse HTML document: {exc}") from exc


def collapse_text(element: Tag) -> str:
    """Return the element's text content with runs of whitespace collapsed."""
    return _WHITESPACE.sub(" ", xml_safe(element.get_text())).strip()


def document_base_url(document: BeautifulSoup, page_url: str) -> str:
    """The URL relative links resolve against: ``<base href>`` or the page URL."""
    base = document.find("base", href=True)
    if base is not None and base["href"].strip():
        return urljoin(page_url, base["href"].strip())
    return page_url


def _select(scope: Tag, selector: str, name: str) -> List[Tag]:
    try:
        return scope.select(selector)
    except soupsieve.SelectorSyntaxError as exc:
        raise SelectorError(f"invalid selector for {name}: {selector!r}") from exc


def _select_first(scope: Tag, selector: Optional[str], name: str) -> Optional[Tag]:
    if not selector:
        return None
    try:
        return scope.select_one(selector)
    except soupsieve.SelectorSyntaxError as exc:
        raise SelectorError(f"invalid selector for {name}: {selector!r}") from exc


def raw_date(element: Tag) -> Tuple[Optional[str], DateSource]:
    """Pick the raw date string, preferring a machine-readable attribute."""
    for attribute in DATE_ATTRIBUTES:
        value = element.get(attribute)
        if isinstance(value, str) and value.strip():
            return value.strip(), DateSource.ATTRIBUTE
    return collapse_text(element) or None, DateSource.TEXT


def extract_item(
    candidate: Tag, base_url: str, config: FeedConfig
) -> Optional[ExtractedItem]:
    """Build one item from a candidate element, or ``None`` if it has no link."""
    heading = _select_first(candidate, config.heading_selector, "heading")
    if heading is None:
        logger.warning(
            "Skipping item in %s: nothing matches heading selector %r",
            config.url,
            config.heading_selector,
        )
        return None

    href = heading.get("href")
    if not isinstance(href, str) or not href.strip():
        logger.warning(
            "Skipping item in %s: element selected as heading has no 'href' attribute",
            config.url,
        )
        return None

    link = urljoin(base_url, xml_safe(href.strip()))
    title = collapse_text(heading) or link

    summary = None
    summary_element = _select_first(candidate, config.summary_selector, "summary")
    if summary_element is not None:
        summary = collapse_text(summary_element) or None

    published = None
    date_element = _select_first(candidate, config.date_selector, "date")
    if date_element is not None:
        value, source = raw_date(date_element)
        published = parse_date(value, source)

    return ExtractedItem(title=title, link=link, summary=summary, published=published)


def extract_items(
    document: BeautifulSoup, page_url: str, config: FeedConfig
) -> ExtractionResult:
    """Extract items from ``document`` in document order.

    Candidates without a usable heading link are dropped and counted. Repeated
    links keep their first occurrence.
    """
    base_url = document_base_url(document, page_url)
    result = ExtractionResult()
    seen = set()

    for candidate in _select(document, config.item_selector, "item"):
        item = extract_item(candidate, base_url, config)
        if item is None:
            result.skipped += 1
            continue
        if item.link in seen:
            logger.debug("Ignoring repeated link %s in %s", item.link, config.url)
            continue
        seen.add(item.link)
        result.items.append(item)

    logger.info(
        "Extracted %d items from %s (%d skipped)",
        len(result.items),
        config.url,
        result.skipped,
    )
    return result
