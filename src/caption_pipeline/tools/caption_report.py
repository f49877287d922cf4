#!/usr/bin/env python3
"""Read-only diagnostic report over the caption registry and cue directories."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from ..config import PipelineConfig, add_config_arguments, configure_logging
from ..diagnostics import DiagnosticReport, build_report
from ..errors import ConfigurationError
from ..locator import ArtifactLocator
from ..registry import open_registry

LOGGER = logging.getLogger("caption_pipeline.tools.caption_report")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check the state of the caption system")
    parser.add_argument("video_id", nargs="?", help="Restrict the report to a single video")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    add_config_arguments(parser)
    return parser.parse_args(argv)


def print_report(report: DiagnosticReport) -> None:
    reconciliation = report.reconciliation

    print("=" * 70)
    if report.video_id:
        print(f"🔍 CAPTION REPORT FOR {report.video_id}")
    else:
        print("🔍 CAPTION SYSTEM REPORT")
    print("=" * 70)

    if report.video_id:
        if report.video_found and report.video is not None:
            print(f"✅ Video found: {report.video.title or report.video.video_id} (status: {report.video.status or 'unknown'})")
        else:
            print(f"❌ Video {report.video_id} not found in database")

    print(f"\nVideos: {report.counts['videos']}  Captions: {report.counts['captions']}  "
          f"Temp files: {report.counts['temp_files']}  Published files: {report.counts['published_files']}")

    if report.record_checks:
        print("\n📝 Registered captions:")
        for check in report.record_checks:
            icon = "✅" if check.exists else "❌"
            print(f"  {icon} {check.video_id} [{check.language}] {check.file_path} -> {check.expected_path}")

    sections = [
        ("Videos without captions", reconciliation.videos_without_captions),
        ("Published files without registry row", reconciliation.published_without_registry),
        ("Stale temp files", reconciliation.stale_temp_artifacts),
        ("Orphaned temp files", reconciliation.orphaned_temp_artifacts),
        ("Registry rows without file", [f"{r.video_id}_{r.language}" for r in reconciliation.registry_without_file]),
    ]
    for title, items in sections:
        if items:
            print(f"\n⚠️  {title} ({len(items)}):")
            for item in items:
                print(f"  - {item}")

    if report.unparseable:
        print(f"\n⚠️  Unparseable files ({len(report.unparseable)}):")
        for item in report.unparseable:
            print(f"  - {item['path']} [{item['location']}]: {item['reason']}")

    for warning in reconciliation.warnings:
        print(f"⚠️  {warning}")
    print("=" * 70)


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
    report = build_report(locator, registry, video_id=args.video_id)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_report(report)

    if args.video_id and not report.video_found:
        return 1
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
