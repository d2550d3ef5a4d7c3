"""Command-line entry point for the high-resolution image finder."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Sequence

from .config import DEFAULT_LANGUAGE, DEFAULT_OUTPUT_DIR, RunConfig, SearchConfig
from .errors import Blocked
from .models import FileReport, Phase
from .pipeline import run_replacer

logger = logging.getLogger("hires_finder.cli")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Replace local images with higher-resolution copies found through reverse image search."
        ),
    )
    parser.add_argument("path", type=Path, help="An image file or directory path")
    parser.add_argument(
        "--output",
        default=DEFAULT_OUTPUT_DIR,
        type=Path,
        help="Directory where the selected images should be written",
    )
    parser.add_argument(
        "--no-copy",
        dest="copy_fallback",
        action="store_false",
        help="Skip images without a larger match instead of copying the original",
    )
    parser.add_argument(
        "--language",
        default=DEFAULT_LANGUAGE,
        help="Interface language sent to the search service (hl parameter)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Per-request timeout in seconds",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="INFO",
        type=str.upper,
        help="Logging verbosity",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging (same as --log-level DEBUG)",
    )
    return parser.parse_args(list(sys.argv[1:] if argv is None else argv))


def _summarize(reports: List[FileReport], elapsed: float) -> None:
    saved = [r for r in reports if r.phase is Phase.SAVED]
    copied = sum(1 for r in saved if r.copied)
    skipped = sum(1 for r in reports if r.phase is Phase.SKIPPED)
    failed = sum(1 for r in reports if r.phase is Phase.FATAL)
    logger.info(
        "Finished in %.2fs (%d replaced, %d copied, %d skipped, %d failed)",
        elapsed,
        len(saved) - copied,
        copied,
        skipped,
        failed,
    )
    for report in reports:
        if report.phase is Phase.FATAL:
            logger.debug("Failed %s: %s", report.path, report.error)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    run_config = RunConfig(
        output_root=Path(args.output).resolve(),
        copy_fallback=args.copy_fallback,
    )
    search_config = SearchConfig(language=args.language, timeout=args.timeout)

    overall_start = time.perf_counter()
    try:
        reports = run_replacer(args.path, run_config, search_config)
    except FileNotFoundError as exc:
        logger.error("%s; please change the file or directory path and try again", exc)
        return 1
    except Blocked as exc:
        logger.error("Run aborted: %s", exc)
        return 1
    _summarize(reports, time.perf_counter() - overall_start)
    return 0


if __name__ == "__main__":
    sys.exit(main())
