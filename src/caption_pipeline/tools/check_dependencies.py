#!/usr/bin/env python3
"""Check that the external tools needed for caption generation are installed."""

from __future__ import annotations

import argparse
import importlib.util
import logging
import shutil
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Optional

from ..audio import FFMPEG_HINT
from ..config import PipelineConfig, add_config_arguments, configure_logging
from ..errors import ConfigurationError
from ..transcription import WHISPER_HINT

LOGGER = logging.getLogger("caption_pipeline.tools.check_dependencies")


@dataclass
class DependencyStatus:
    name: str
    available: bool
    required: bool
    detail: str = ""
    hint: str = ""


def tool_version(executable: str, flag: str = "-version") -> Optional[str]:
    try:
        result = subprocess.run([executable, flag], capture_output=True, text=True, timeout=10)
    except (OSError, subprocess.SubprocessError):
        return None
    output = (result.stdout or result.stderr or "").strip()
    return output.splitlines()[0] if output else ""


def check_executable(executable: str, name: str, required: bool, hint: str, version_flag: str = "-version") -> DependencyStatus:
    resolved = shutil.which(executable)
    if resolved is None:
        return DependencyStatus(name, False, required, f"{executable} not found on PATH", hint)
    version = tool_version(resolved, version_flag) if version_flag else None
    return DependencyStatus(name, True, required, version or resolved, hint)


def collect_statuses(config: PipelineConfig) -> List[DependencyStatus]:
    ffprobe_bin = "ffprobe"
    if config.ffmpeg_bin.endswith("ffmpeg"):
        ffprobe_bin = config.ffmpeg_bin[: -len("ffmpeg")] + "ffprobe"

    statuses = [
        check_executable(config.ffmpeg_bin, "FFmpeg", True, FFMPEG_HINT),
        check_executable(ffprobe_bin, "FFprobe", False, FFMPEG_HINT),
        check_executable(config.whisper_bin, "Whisper", config.strategy == "local", WHISPER_HINT, version_flag=""),
    ]

    has_faster_whisper = importlib.util.find_spec("faster_whisper") is not None
    statuses.append(
        DependencyStatus(
            "faster-whisper",
            has_faster_whisper,
            config.strategy == "faster-whisper",
            "importable" if has_faster_whisper else "module not installed",
            "pip install faster-whisper",
        )
    )

    if config.strategy == "remote":
        has_key = bool(config.remote_api_key)
        statuses.append(
            DependencyStatus(
                "OPENAI_API_KEY",
                has_key,
                True,
                "set" if has_key else "not set",
                "Export OPENAI_API_KEY with a key for the transcription API",
            )
        )
    return statuses


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check caption generation dependencies")
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

    print("🔍 Checking caption generation dependencies...\n")
    print(f"Strategy: {config.strategy}\n")

    missing_required = False
    for status in collect_statuses(config):
        if status.available:
            print(f"✅ {status.name}: {status.detail}")
            continue
        icon = "❌" if status.required else "⚠️ "
        print(f"{icon} {status.name}: {status.detail}")
        print(f"   {status.hint}")
        missing_required = missing_required or status.required

    print()
    if missing_required:
        print("❌ Required dependencies are missing")
        return 1
    print("✅ All required dependencies are available")
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
