"""Command line entry point for zen-free-models."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import ScraperConfig, SyncConfig, configure_logging, parse_log_level
from .errors import InvalidInput
from .pipeline import MatcherConfig, ModelMatcher
from .runner import load_display_names, load_identifiers, run_scrape
from .sync import sync

logger = logging.getLogger(__name__)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Match free Zen model names to API model IDs.")
    parser.add_argument(
        "--log-level",
        default=parse_log_level(os.getenv("LOG_LEVEL")),
        choices=["silent", "error", "warn", "info", "debug"],
        help="Log verbosity (default: LOG_LEVEL or info)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    match = commands.add_parser("match", help="Print the IDs matching a list of display names")
    match.add_argument("ids", type=Path, help="File listing the API model IDs (.json or .txt)")
    match.add_argument("names", type=Path, help="File listing the display names (.json, .txt, .csv or Excel)")

    scrape = commands.add_parser("scrape", help="Fetch model IDs, match display names and write the artifact")
    scrape.add_argument("names", type=Path, help="Display names extracted from the pricing table")
    scrape.add_argument("--output", type=Path, default=None, help="Artifact path (default: OUTPUT_PATH)")

    for sub in (match, scrape):
        sub.add_argument("--name-column", default="name", help="Column holding the names in tabular input")
        sub.add_argument(
            "--no-llm",
            dest="use_llm",
            action="store_false",
            help="Match by normalization only",
        )

    commands.add_parser("sync", help="Refresh the cached artifact and patch opencode.json")
    return parser.parse_args(argv)


def _run_match(args: argparse.Namespace, scraper_config: ScraperConfig) -> int:
    try:
        identifiers = load_identifiers(args.ids)
        names = load_display_names(args.names, args.name_column)
    except (OSError, KeyError, ValueError) as exc:
        logger.error("Could not load input: %s", exc)
        return 1

    matcher = ModelMatcher(MatcherConfig(use_llm=args.use_llm, llm=scraper_config.llm_config()))
    try:
        matched = matcher.match(identifiers, names)
    except InvalidInput as exc:
        logger.error("%s", exc)
        return 1
    for identifier in sorted(matched):
        print(identifier)
    return 0


def _run_scrape(args: argparse.Namespace, scraper_config: ScraperConfig) -> int:
    if args.output is not None:
        scraper_config.output_path = args.output
    try:
        names = load_display_names(args.names, args.name_column)
    except (OSError, KeyError, ValueError) as exc:
        logger.error("Could not load display names: %s", exc)
        return 1

    matcher_config = MatcherConfig(use_llm=args.use_llm, llm=scraper_config.llm_config())
    output = run_scrape(scraper_config, names, matcher_config=matcher_config)
    return 0 if output is not None else 1


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level)

    if args.command == "sync":
        status = sync(SyncConfig.from_env())
        logger.debug("Sync finished: %s", status.value)
        return 0

    scraper_config = ScraperConfig.from_env()
    if args.command == "match":
        return _run_match(args, scraper_config)
    return _run_scrape(args, scraper_config)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
