"""WebVTT cue encoding, parsing and validation.

Timestamps are handled as integer milliseconds throughout so that formatting
and parsing round-trip exactly.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, List

from .errors import CueParseError, EmptyTranscriptionError
from .models import Segment

HEADER = "WEBVTT"

TIMING_PATTERN = re.compile(r"^\s*(?P<start>[\d:.,]+)\s*-->\s*(?P<end>[\d:.,]+)")


def format_timestamp(ms: int) -> str:
    """
    Format a non-negative millisecond offset as a WebVTT timestamp.

    Returns:
        "HH:MM:SS.mmm", zero padded. Hours grow past two digits when needed.

    Raises:
        ValueError: If `ms` is negative.
    """
    total_ms = int(ms)
    if total_ms < 0:
        raise ValueError(f"Timestamp cannot be negative: {ms}")
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02}:{minutes:02}:{secs:02}.{millis:03}"


def parse_timestamp(timestamp: str) -> int:
    """Parse "HH:MM:SS.mmm" or "MM:SS.mmm" (comma accepted as separator) into milliseconds."""
    parts = timestamp.strip().replace(",", ".").split(":")

    if len(parts) == 3:
        hours_str, minutes_str, seconds_str = parts
    elif len(parts) == 2:
        hours_str = "0"
        minutes_str, seconds_str = parts
    else:
        raise CueParseError(f"Invalid VTT timestamp format: {timestamp}")

    try:
        hours = int(hours_str)
        minutes = int(minutes_str)
        if "." in seconds_str:
            secs_str, frac = seconds_str.split(".", 1)
            seconds = int(secs_str)
            # Normalise fractional part to milliseconds (pad or truncate to 3 digits)
            millis = int((frac + "000")[:3])
        else:
            seconds = int(seconds_str)
            millis = 0
    except ValueError as exc:
        raise CueParseError(f"Invalid VTT timestamp format: {timestamp}") from exc

    if minutes >= 60 or seconds >= 60 or min(hours, minutes, seconds) < 0:
        raise CueParseError(f"Invalid VTT timestamp format: {timestamp}")

    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + millis


def segments_to_webvtt(segments: Iterable[Segment]) -> str:
    """
    Encode an ordered segment sequence as a WebVTT document.

    Segments whose text is blank after stripping are skipped and cue numbers are
    assigned only to emitted cues. Identical input always yields identical output.

    Raises:
        EmptyTranscriptionError: If no cue would be emitted.
    """
    lines: List[str] = [HEADER, ""]

    cue_idx = 1
    for segment in segments:
        text = (segment.text or "").strip()
        if not text:
            continue

        lines.append(str(cue_idx))
        lines.append(f"{format_timestamp(segment.start_ms)} --> {format_timestamp(segment.end_ms)}")
        lines.append(text)
        lines.append("")
        cue_idx += 1

    if cue_idx == 1:
        raise EmptyTranscriptionError("Transcription returned no segments; refusing to write an empty cue file")

    return "\n".join(lines) + "\n"


def parse_webvtt(content: str) -> List[Segment]:
    """
    Parse a WebVTT document into segments.

    Raises:
        CueParseError: On a missing header, a malformed timing line, a cue with
            no text, or a document without cues. Truncated files fail here.
    """
    lines = content.lstrip("\ufeff").splitlines()
    if not lines or not lines[0].startswith(HEADER):
        raise CueParseError("Missing WEBVTT header")

    segments: List[Segment] = []
    i = 1

    # Skip header metadata up to the first blank line
    while i < len(lines) and lines[i].strip():
        i += 1

    while i < len(lines):
        line = lines[i].strip()

        if not line:
            i += 1
            continue

        if line.startswith("NOTE"):
            while i < len(lines) and lines[i].strip():
                i += 1
            continue

        timing_match = TIMING_PATTERN.match(line)
        if not timing_match:
            # Cue identifier line; the timing line must follow
            i += 1
            if i >= len(lines):
                raise CueParseError(f"Cue {line!r} has no timing line")
            line = lines[i].strip()
            timing_match = TIMING_PATTERN.match(line)
            if not timing_match:
                raise CueParseError(f"Invalid timing line: {line!r}")

        start = parse_timestamp(timing_match.group("start"))
        end = parse_timestamp(timing_match.group("end"))
        if end < start:
            raise CueParseError(f"Cue ends before it starts: {line!r}")

        i += 1
        text_lines = []
        while i < len(lines) and lines[i].strip():
            text_lines.append(lines[i].strip())
            i += 1

        if not text_lines:
            raise CueParseError(f"Cue at {format_timestamp(start)} has no text")

        segments.append(Segment(start_ms=start, end_ms=end, text="\n".join(text_lines)))

    if not segments:
        raise CueParseError("Document contains no cues")

    return segments


def read_cue_file(path: Path) -> List[Segment]:
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise CueParseError(f"{path} is not UTF-8 text") from exc
    return parse_webvtt(content)


def is_valid_cue_file(path: Path) -> bool:
    """Return False for missing, zero-byte, truncated or otherwise unparseable cue files."""
    try:
        if path.stat().st_size == 0:
            return False
        read_cue_file(path)
    except (OSError, CueParseError):
        return False
    return True


def atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as tmp_file:
            tmp_file.write(content)
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_cue_file(path: Path, segments: Iterable[Segment]) -> Path:
    """Encode `segments` and write them atomically; nothing is written when encoding fails."""
    atomic_write(path, segments_to_webvtt(segments))
    return path
