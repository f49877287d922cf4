#!/usr/bin/env python3
"""Remove stale and orphaned temp cue files.

A temp file is stale once a published caption exists for its video, and orphaned
when its video is neither in the database nor published. Published captions and
registry rows are never touched.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from ..collector import GarbageCollector, Outcome
from ..config import PipelineConfig, add_config_arguments, configure_logging
from ..diagnostics import build_report
from ..errors import ConfigurationError
from ..locator import ArtifactLocator
from ..manifest import Manifest
from ..registry import open_registry

LOGGER = logging.getLogger("caption_pipeline.tools.cleanup_captions")

OUTCOME_ICONS = {
    Outcome.DELETED: "🗑️ ",
    Outcome.WOULD_DELETE: "🔍",
    Outcome.ALREADY_GONE: "➖",
    Outcome.DELETE_FAILED: "❌",
}


def _size_kb(path) -> str:
    try:
        return f"{path.stat().st_size / 1024:.2f} KB"
    except OSError:
        return "missing"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete stale and orphaned temp caption files")
    parser.add_argument("--dry-run", action="store_true", help="List deletable files without removing anything")
    parser.add_argument("--audit-log", dest="audit_log", help="Path to the cleanup audit log (JSONL)")
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

    if not config.database.exists():
        LOGGER.error("Database %s not found", config.database)
        return 2

    registry = open_registry(config.database)
    locator = ArtifactLocator(config.temp_dir, config.published_dir, registry=registry, extension=config.cue_extension)
    report = build_report(locator, registry)
    reconciliation = report.reconciliation

    print("🔍 Analyzing subtitle files...\n")
    print(f"📹 Videos in database:       {report.counts['videos']}")
    print(f"📝 Captions in database:     {report.counts['captions']}")
    print(f"📂 Temp files found:         {report.counts['temp_files']}")
    print(f"📂 Published files found:    {report.counts['published_files']}")
    if report.counts["unparseable_files"]:
        print(f"⚠️  Unparseable file names:   {report.counts['unparseable_files']}")
    for warning in reconciliation.warnings:
        print(f"⚠️  {warning}")

    collector = GarbageCollector(config.temp_dir, extension=config.cue_extension, audit_log=Manifest(config.audit_log))
    candidates = collector.candidates(reconciliation)

    if not candidates:
        print("\n✅ No unused temp caption files found. All clean!")
        return 0

    print(f"\n🗑️  Found {len(candidates)} unused temp caption files:\n")
    for candidate in candidates:
        print(f"  - {candidate.path.name} ({_size_kb(candidate.path)}) [{candidate.reason}]")

    if args.dry_run:
        print("\n🔍 DRY RUN MODE - No files will be deleted")

    result = collector.collect(reconciliation, dry_run=args.dry_run)

    print()
    for outcome in result.outcomes:
        line = f"  {OUTCOME_ICONS[outcome.outcome]} {outcome.outcome.value}: {outcome.candidate.path.name}"
        if outcome.error:
            line += f" ({outcome.error})"
        print(line)

    print("\n" + "=" * 70)
    print("📊 CLEANUP SUMMARY")
    print("=" * 70)
    if args.dry_run:
        would_delete = [item for item in result.outcomes if item.outcome is Outcome.WOULD_DELETE]
        print(f"Would delete: {len(would_delete)}")
    else:
        print(f"Deleted:      {len(result.deleted)}")
    print(f"Already gone: {len(result.already_gone)}")
    print(f"Failed:       {len(result.failed)}")
    print("=" * 70)

    return 1 if result.has_failures else 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
