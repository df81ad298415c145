"""On-disk store of HTTP validators keyed by URL."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from .files import atomic_write
from .models import CacheEntry

logger = logging.getLogger(__name__)

CACHE_FILENAME = "http-cache.json"
CACHE_VERSION = 1


class CacheStore:
    """Mapping of URL to the validators of its last fresh response.

    The store is loaded once, mutated in memory and saved once. A store without
    a path never touches the filesystem, which is what tests use.
    """

    def __init__(
        self,
        entries: Optional[Dict[str, CacheEntry]] = None,
        path: Optional[Path] = None,
    ):
        self._entries: Dict[str, CacheEntry] = dict(entries or {})
        self._path = path
        self._lock = threading.Lock()
        self._dirty = False

    @classmethod
    def load(cls, path: Path) -> "CacheStore":
        """Read the store from ``path``, starting empty if it is unusable."""
        path = Path(path)
        if not path.exists():
            logger.debug("No HTTP cache at %s, starting empty", path)
            return cls(path=path)

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(
                "Unable to read HTTP cache %s (%s), starting empty", path, exc
            )
            return cls(path=path)

        if not isinstance(payload, dict) or payload.get("version") != CACHE_VERSION:
            logger.warning("Ignoring HTTP cache %s with unknown format", path)
            return cls(path=path)

        entries: Dict[str, CacheEntry] = {}
        raw_entries = payload.get("entries")
        if isinstance(raw_entries, dict):
            for url, raw in raw_entries.items():
                if not isinstance(raw, dict):
                    continue
                entries[url] = CacheEntry(
                    url=url,
                    etag=raw.get("etag"),
                    last_modified=raw.get("last_modified"),
                    content_hash=raw.get("content_hash"),
                )

        logger.debug("Loaded %d HTTP cache entries from %s", len(entries), path)
        return cls(entries, path=path)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def lookup(self, url: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(url)

    def record(
        self,
        url: str,
        etag: Optional[str],
        last_modified: Optional[str],
        content_hash: Optional[str],
    ) -> CacheEntry:
        """Replace the entry for ``url`` with the validators of a fresh response."""
        entry = CacheEntry(
            url=url, etag=etag, last_modified=last_modified, content_hash=content_hash
        )
        with self._lock:
            self._entries[url] = entry
            self._dirty = True
        logger.debug(
            "Recorded validators for %s (etag=%s, last_modified=%s)",
            url,
            etag,
            last_modified,
        )
        return entry

    def save(self) -> None:
        """Flush the store to disk if it changed since it was loaded."""
        with self._lock:
            if self._path is None or not self._dirty:
                return
            payload = {
                "version": CACHE_VERSION,
                "entries": {
                    url: {
                        "etag": entry.etag,
                        "last_modified": entry.last_modified,
                        "content_hash": entry.content_hash,
                    }
                    for url, entry in sorted(self._entries.items())
                },
            }
            data = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
            atomic_write(self._path, data.encode("utf-8"))
            self._dirty = False
        logger.info("Saved HTTP cache to %s", self._path)
