"""Configuration loading for generated feeds."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import soupsieve

from .errors import ConfigError
from .models import DEFAULT_MIN_ITEMS, FeedConfig

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4
DEFAULT_TIMEOUT = 30.0


@dataclass
class AppConfig:
    feeds: List[FeedConfig]
    output_dir: Optional[str] = None
    cache_dir: Optional[str] = None
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT
    min_items: int = DEFAULT_MIN_ITEMS
    source: Optional[str] = field(default=None, repr=False)


def default_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
    return Path(base) / "rsspls" / "feeds.toml"


def default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME") or os.path.expanduser("~/.cache")
    return Path(base) / "rsspls"


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the config file if it's not absolute."""
    target = Path(target_path).expanduser()
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _require_str(table: Dict[str, Any], key: str, where: str) -> str:
    value = table.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{where}: '{key}' must be a non-empty string")
    return value.strip()


def _optional_str(table: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{where}: '{key}' must be a string")
    return value.strip() or None


def _positive_number(table: Dict[str, Any], key: str, default, where: str, kind=int):
    value = table.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{where}: '{key}' must be a number")
    if kind is int and not isinstance(value, int):
        raise ConfigError(f"{where}: '{key}' must be an integer")
    if value <= 0:
        raise ConfigError(f"{where}: '{key}' must be positive")
    return kind(value)


def _check_selector(selector: Optional[str], key: str, where: str) -> None:
    if selector is None:
        return
    try:
        soupsieve.compile(selector)
    except soupsieve.SelectorSyntaxError as exc:
        raise ConfigError(
            f"{where}: invalid selector for '{key}': {selector!r}"
        ) from exc


def _check_filename(filename: str, where: str) -> None:
    separators = {"/", "\\", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    if filename in (".", "..") or any(sep in filename for sep in separators):
        raise ConfigError(
            f"{where}: 'filename' must be a plain file name, got {filename!r}"
        )


def parse_feed(raw: Any, index: int, min_items: int) -> FeedConfig:
    """Validate one ``[[feed]]`` table."""
    where = f"feed #{index + 1}"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: must be a table")

    title = _require_str(raw, "title", where)
    where = f"feed '{title}'"
    filename = _require_str(raw, "filename", where)
    _check_filename(filename, where)

    selectors = raw.get("config")
    if not isinstance(selectors, dict):
        raise ConfigError(f"{where}: missing [feed.config] table")

    url = _require_str(selectors, "url", where)
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"{where}: 'url' must be an http(s) URL, got {url!r}")

    item = _require_str(selectors, "item", where)
    heading = _require_str(selectors, "heading", where)
    summary = _optional_str(selectors, "summary", where)
    date = _optional_str(selectors, "date", where)
    for key, selector in (
        ("item", item),
        ("heading", heading),
        ("summary", summary),
        ("date", date),
    ):
        _check_selector(selector, key, where)

    return FeedConfig(
        title=title,
        filename=filename,
        url=url,
        item_selector=item,
        heading_selector=heading,
        summary_selector=summary,
        date_selector=date,
        min_items=_positive_number(raw, "min_items", min_items, where),
    )


def parse_config(data: Dict[str, Any], base_path: Path) -> AppConfig:
    """Build an ``AppConfig`` from an already decoded TOML document."""
    settings = data.get("rsspls", {})
    if not isinstance(settings, dict):
        raise ConfigError("[rsspls] must be a table")

    output_dir = _optional_str(settings, "output", "[rsspls]")
    cache_dir = _optional_str(settings, "cache_dir", "[rsspls]")
    min_items = _positive_number(settings, "min_items", DEFAULT_MIN_ITEMS, "[rsspls]")

    raw_feeds = data.get("feed", [])
    if not isinstance(raw_feeds, list):
        raise ConfigError("'feed' must be an array of tables ([[feed]])")

    feeds = [parse_feed(raw, index, min_items) for index, raw in enumerate(raw_feeds)]
    seen = set()
    for feed in feeds:
        if feed.filename in seen:
            raise ConfigError(
                f"feed '{feed.title}': duplicate filename {feed.filename!r}"
            )
        seen.add(feed.filename)

    return AppConfig(
        feeds=feeds,
        output_dir=_resolve_path(base_path, output_dir) if output_dir else None,
        cache_dir=_resolve_path(base_path, cache_dir) if cache_dir else None,
        concurrency=_positive_number(
            settings, "concurrency", DEFAULT_CONCURRENCY, "[rsspls]"
        ),
        timeout=_positive_number(
            settings, "timeout", DEFAULT_TIMEOUT, "[rsspls]", kind=float
        ),
        min_items=min_items,
    )


def load_config(path: str) -> AppConfig:
    """Read and validate the TOML configuration file at ``path``."""
    config_path = Path(path).expanduser().resolve()
    logger.info("Loading configuration from %s", config_path)
    try:
        with config_path.open("rb") as handle:
            data = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f"configuration file not found: {config_path}") from exc
    except OSError as exc:
        raise ConfigError(
            f"unable to read configuration file {config_path}: {exc}"
        ) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"unable to parse configuration file {config_path}: {exc}"
        ) from exc

    config = parse_config(data, config_path)
    config.source = str(config_path)
    logger.info("Loaded %d feed definitions", len(config.feeds))
    return config
