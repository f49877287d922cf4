#!/usr/bin/env python3
"""Batch caption generation over the upload directory."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..config import PipelineConfig, add_config_arguments, configure_logging
from ..errors import ConfigurationError, NotFoundError
from ..manifest import Manifest
from ..pipeline import run_batch
from ..registry import open_registry

LOGGER = logging.getLogger("caption_pipeline.tools.batch_captions")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate temp caption files for every uploaded video")
    parser.add_argument("--manifest", type=Path, help="Path to manifest file (JSONL)")
    parser.add_argument("--workers", type=int, default=1, help="Number of worker threads for processing")
    parser.add_argument("--max-files", type=int, help="Limit the number of videos processed in this run")
    parser.add_argument("--force", action="store_true", help="Reprocess videos even if captions exist")
    parser.add_argument("--progress", action="store_true", help="Display progress bar")
    parser.add_argument(
        "--ignore-catalog",
        action="store_true",
        help="Process every video file, not only those known to the video catalog",
    )
    add_config_arguments(parser)
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose, args.log_file)

    try:
        config = PipelineConfig.from_args(args)
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return 2

    manifest = Manifest(config.manifest)
    catalog = None
    if not args.ignore_catalog:
        if config.database.exists():
            catalog = open_registry(config.database)
        else:
            LOGGER.warning("Database %s not found; processing every video file", config.database)

    try:
        summary = run_batch(
            config,
            video_catalog=catalog,
            force=args.force,
            max_files=args.max_files,
            workers=args.workers,
            progress=args.progress,
            manifest=manifest,
        )
    except NotFoundError as exc:
        LOGGER.error("%s", exc)
        return 2
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return 2
    except KeyboardInterrupt:
        LOGGER.warning("Aborted via Ctrl+C")
        return 130

    print("=" * 70)
    print("📊 BATCH SUMMARY")
    print("=" * 70)
    print(f"Processed: {summary.processed}")
    print(f"Skipped:   {summary.skipped}")
    print(f"Failed:    {summary.failed}")
    for result in summary.results:
        if result.get("status") == "error":
            print(f"  ❌ {result['video_id']}: {result.get('error')}")
    print("=" * 70)

    return 0 if summary.ok else 1


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
