"""Audio extraction with FFmpeg.

Pulls a mono 16-bit PCM WAV track out of a video container. The source file is
never modified and no partial WAV survives a failed or interrupted run.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import ExternalToolError, NotFoundError

LOGGER = logging.getLogger("caption_pipeline.audio")

DEFAULT_SAMPLE_RATE = 16000

FFMPEG_HINT = "Install FFmpeg first: https://ffmpeg.org/download.html (e.g. `apt install ffmpeg` or `brew install ffmpeg`)"


def require_tool(executable: str, name: str, hint: str) -> str:
    """Resolve `executable` on PATH or raise an actionable ExternalToolError."""
    resolved = shutil.which(executable)
    if resolved is None:
        raise ExternalToolError(name, f"{name} is not installed or not on PATH ({executable})", hint)
    return resolved


def _remove_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        LOGGER.warning("Failed to delete partial audio file %s", path)


def extract_audio(
    video_path: Path,
    output_path: Path,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    ffmpeg_bin: str = "ffmpeg",
) -> Path:
    """
    Extract a mono PCM WAV track from `video_path` into `output_path`.

    Raises:
        NotFoundError: If the source video does not exist.
        ExternalToolError: If FFmpeg is missing or exits non-zero.
    """
    video_path = Path(video_path)
    output_path = Path(output_path)
    if not video_path.is_file():
        raise NotFoundError(f"Video file not found: {video_path}")

    ffmpeg = require_tool(ffmpeg_bin, "FFmpeg", FFMPEG_HINT)

    command = [
        ffmpeg,
        "-y",
        "-i",
        str(video_path),
        "-vn",
        "-ac",
        "1",
        "-ar",
        str(sample_rate),
        "-c:a",
        "pcm_s16le",
        "-f",
        "wav",
        str(output_path),
    ]

    LOGGER.debug("Running FFmpeg: %s", " ".join(command))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except BaseException:
        _remove_partial(output_path)
        raise

    if result.returncode != 0:
        _remove_partial(output_path)
        stderr_preview = (result.stderr or "").splitlines()[-5:]
        raise ExternalToolError(
            "FFmpeg",
            f"FFmpeg failed for {video_path}: return code {result.returncode}\n" + "\n".join(stderr_preview),
        )

    if not output_path.exists() or output_path.stat().st_size == 0:
        _remove_partial(output_path)
        raise ExternalToolError("FFmpeg", f"FFmpeg produced no audio for {video_path}")

    return output_path


@contextmanager
def temporary_audio(
    video_path: Path,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    ffmpeg_bin: str = "ffmpeg",
    work_dir: Optional[Path] = None,
) -> Iterator[Path]:
    """Yield an extracted WAV in a temporary location and always delete it afterwards."""
    tmp_file = tempfile.NamedTemporaryFile(
        prefix="caption_audio_",
        suffix=".wav",
        dir=str(work_dir) if work_dir else None,
        delete=False,
    )
    tmp_path = Path(tmp_file.name)
    tmp_file.close()
    try:
        yield extract_audio(video_path, tmp_path, sample_rate=sample_rate, ffmpeg_bin=ffmpeg_bin)
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                LOGGER.warning("Failed to delete temp audio file %s", tmp_path)


def probe_duration(video_path: Path, ffprobe_bin: str = "ffprobe") -> Optional[float]:
    """Return the container duration in seconds, or None when ffprobe is unavailable or fails."""
    command = [
        ffprobe_bin,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        str(video_path),
    ]

    try:
        result = subprocess.run(command, capture_output=True, text=True, check=True)
        data = json.loads(result.stdout or "{}")
    except (OSError, subprocess.CalledProcessError, json.JSONDecodeError) as exc:
        LOGGER.debug("Failed to probe duration for %s: %s", video_path, exc)
        return None

    value = data.get("format", {}).get("duration")
    if value in (None, "", "N/A"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
