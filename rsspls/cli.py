"""Command-line interface for rsspls."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import default_cache_dir, default_config_path, load_config
from .errors import ConfigError
from .runner import RunConfig, execute

logger = logging.getLogger(__name__)

LOG_ENV_VAR = "RSSPLS_LOG"


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="rsspls", description="Generate RSS feeds from websites."
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"Path to the TOML configuration file (default: {default_config_path()}).",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Directory to write feeds to. Overrides config.",
    )
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Directory for the HTTP cache. Overrides config.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Ignore cached validators and fetch every page unconditionally.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Logging level (e.g. DEBUG, INFO, WARNING). Overrides ${LOG_ENV_VAR}.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def configure_logging(
    level_name: Optional[str] = None, log_file: Optional[str] = None
) -> None:
    """Initialise logging at ``level_name``, else $RSSPLS_LOG, else INFO."""
    level_name = level_name or os.environ.get(LOG_ENV_VAR) or "INFO"
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level, args.log_file)

        app_config = load_config(args.config or str(default_config_path()))

        output_dir = args.output or app_config.output_dir
        if not output_dir:
            raise ConfigError(
                "no output directory: set 'output' in [rsspls] or pass --output"
            )
        if not app_config.feeds:
            logger.warning("No feeds configured in %s", app_config.source)

        config = RunConfig(
            feeds=app_config.feeds,
            output_dir=output_dir,
            cache_dir=(
                args.cache_dir or app_config.cache_dir or str(default_cache_dir())
            ),
            concurrency=app_config.concurrency,
            timeout=app_config.timeout,
            force=args.force,
        )
        result = execute(config)
    except (ValueError, ConfigError) as exc:
        parser.error(str(exc))
    except OSError as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    for report in result.failed:
        logger.error("Feed '%s' was not updated: %s", report.feed.title, report.error)
    return 0 if result.ok else 1
