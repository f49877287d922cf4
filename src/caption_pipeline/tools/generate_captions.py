#!/usr/bin/env python3
"""Generate a WebVTT caption file for a single video."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..config import PipelineConfig, add_config_arguments, configure_logging
from ..errors import (
    ConfigurationError,
    EmptyTranscriptionError,
    ExternalToolError,
    NotFoundError,
    ServiceError,
)
from ..pipeline import generate

LOGGER = logging.getLogger("caption_pipeline.tools.generate_captions")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate WebVTT captions for a single video")
    parser.add_argument("video", type=Path, help="Path to the source video")
    parser.add_argument("--output", type=Path, help="Output cue file (default: next to the video with a .vtt suffix)")
    parser.add_argument("--force", action="store_true", help="Regenerate even if a valid cue file already exists")
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

    try:
        output_path = generate(
            args.video,
            output_path=args.output,
            config=config,
            skip_existing=not args.force,
        )
    except NotFoundError as exc:
        LOGGER.error("%s", exc)
        return 2
    except (ExternalToolError, ServiceError, EmptyTranscriptionError, ConfigurationError) as exc:
        LOGGER.error("Caption generation failed for %s: %s", args.video, exc)
        return 1
    except KeyboardInterrupt:
        LOGGER.warning("Aborted via Ctrl+C")
        return 130

    print(f"✅ Captions written to {output_path}")
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
