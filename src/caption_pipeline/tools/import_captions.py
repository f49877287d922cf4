#!/usr/bin/env python3
"""Promote temp cue files into the published captions directory and register them."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from ..config import PipelineConfig, add_config_arguments, configure_logging
from ..errors import ConfigurationError
from ..importer import FAILED, SKIPPED_EXISTS, SKIPPED_UNKNOWN_VIDEO, import_temp_artifacts
from ..locator import ArtifactLocator
from ..registry import open_registry

LOGGER = logging.getLogger("caption_pipeline.tools.import_captions")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import generated cue files into the caption registry")
    parser.add_argument("--import-language", dest="import_language", type=str, help="Language to register imported captions under (default: en)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be imported without copying or writing")
    parser.add_argument("--overwrite", action="store_true", help="Replace captions that are already registered")
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

    if args.dry_run:
        print("🔍 DRY RUN MODE - No changes will be made\n")

    registry = open_registry(config.database)
    locator = ArtifactLocator(
        config.temp_dir,
        config.published_dir,
        registry=registry,
        extension=config.cue_extension,
        validate_cue_files=True,
    )

    summary = import_temp_artifacts(
        locator,
        registry,
        registry,
        language=config.import_language,
        dry_run=args.dry_run,
        overwrite=args.overwrite,
    )

    for item in locator.unparseable:
        print(f"⚠️  Ignored {item.path.name}: {item.reason}")

    print("=" * 70)
    print("📊 IMPORT SUMMARY")
    print("=" * 70)
    print(f"{'Would import' if args.dry_run else 'Imported'}: {summary.imported}")
    print(f"Skipped (unknown video):   {summary.count(SKIPPED_UNKNOWN_VIDEO)}")
    print(f"Skipped (already exists):  {summary.count(SKIPPED_EXISTS)}")
    print(f"Failed: {summary.failed}")
    for result in summary.results:
        if result.status == FAILED:
            print(f"  ❌ {result.video_id}: {result.error}")
    print("=" * 70)

    return 1 if summary.failed else 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
