"""Headless command-line interface for tz-radio."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config_store import load_config_with_notices
from .logging_utils import setup_logging
from .paths import config_path, log_dir
from .runtime_config import prefetch_floor, resolve_log_level


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tz-radio-cli", description="Check tz-radio settings without the TUI."
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument("--config", help="Settings file to check")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = logging.getLogger(__name__)
    try:
        path = Path(args.config) if args.config else config_path()
        config, notices = load_config_with_notices(path)
        level = resolve_log_level(
            verbose=args.verbose, quiet=args.quiet, default=config.log_level
        )
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
        )
        logger.info("Starting tz-radio CLI")
        for notice in notices:
            print(notice, file=sys.stderr)
        credentials = "configured" if config.has_credentials else "missing"
        print(f"Settings: {path}")
        print(f"Credentials: {credentials}")
        print(
            f"Station tracks: max {config.max_station_tracks}, "
            f"refill below {prefetch_floor(config.max_station_tracks)}"
        )
        print("tz-radio CLI is ready.")
        return 0
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
