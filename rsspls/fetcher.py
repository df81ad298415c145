"""Conditional HTTP fetching of source pages."""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, Optional, Tuple, Union

import requests

from . import __version__
from .errors import FetchError
from .models import CacheEntry, FetchResult, Fresh, NotModified

logger = logging.getLogger(__name__)

USER_AGENT = f"rsspls/{__version__}"
CONNECT_TIMEOUT = 10.0
READ_TIMEOUT = 30.0

Timeout = Union[float, Tuple[float, float]]


def build_session() -> requests.Session:
    """Return a session shared by all feed workers."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session


def conditional_headers(entry: Optional[CacheEntry]) -> Dict[str, str]:
    """Headers that let the server answer 304 if the page is unchanged."""
    headers: Dict[str, str] = {}
    if entry is None:
        return headers
    if entry.etag:
        headers["If-None-Match"] = entry.etag
    if entry.last_modified:
        headers["If-Modified-Since"] = entry.last_modified
    return headers


def body_hash(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


def fetch_page(
    session: requests.Session,
    url: str,
    entry: Optional[CacheEntry] = None,
    timeout: Timeout = (CONNECT_TIMEOUT, READ_TIMEOUT),
) -> FetchResult:
    """Fetch ``url``, sending validators from ``entry`` when available.

    Returns ``NotModified`` on 304 and ``Fresh`` on any 2xx response. Network
    failures, timeouts and every other status raise ``FetchError``.
    """
    headers = conditional_headers(entry)
    logger.info("Fetching %s", url)
    if headers:
        logger.debug("Conditional request for %s: %s", url, headers)

    try:
        response = session.get(url, headers=headers, timeout=timeout)
    except requests.Timeout as exc:
        raise FetchError(url, f"timed out ({exc})") from exc
    except requests.RequestException as exc:
        raise FetchError(url, str(exc)) from exc

    status = response.status_code
    if status == 304:
        logger.info("%s not modified", url)
        return NotModified(url=url)

    if not 200 <= status < 300:
        reason = response.reason or "Unknown Status"
        raise FetchError(url, f"{status} {reason}", status=status)

    try:
        body = response.content
    except requests.RequestException as exc:
        raise FetchError(url, f"unable to read response body: {exc}") from exc

    digest = body_hash(body)
    changed = entry is None or entry.content_hash != digest
    logger.info(
        "Fetched %s (%d bytes%s)",
        url,
        len(body),
        "" if changed else ", content unchanged",
    )
    return Fresh(
        body=body,
        url=response.url or url,
        etag=response.headers.get("ETag"),
        last_modified=response.headers.get("Last-Modified"),
        content_hash=digest,
        changed=changed,
    )
