"""Value types shared by the generation and reconciliation halves of the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Segment:
    """One transcribed span of speech. Times are integer milliseconds."""

    start_ms: int
    end_ms: int
    text: str


@dataclass(frozen=True)
class CaptionRecord:
    """Registry row. ``(video_id, language)`` is unique in the registry."""

    video_id: str
    language: str
    file_path: str

    @property
    def key(self) -> str:
        return f"{self.video_id}_{self.language}"


@dataclass(frozen=True)
class Video:
    video_id: str
    title: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class TempArtifact:
    """Generated cue file named ``{video_id}{ext}`` in the temp working directory."""

    video_id: str
    path: Path


@dataclass(frozen=True)
class PublishedArtifact:
    """Imported cue file named ``{video_id}_{language}{ext}`` in the published directory."""

    video_id: str
    language: str
    path: Path

    @property
    def key(self) -> str:
        return f"{self.video_id}_{self.language}"


@dataclass(frozen=True)
class UnparseableArtifact:
    path: Path
    location: str  # "temp" or "published"
    reason: str
