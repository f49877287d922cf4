"""Enumerates caption artifacts across the temp directory, the published directory and the registry."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .models import CaptionRecord, PublishedArtifact, TempArtifact, UnparseableArtifact
from .registry import CaptionRegistry
from .webvtt import is_valid_cue_file

LOGGER = logging.getLogger("caption_pipeline.locator")

# Video ids are alphanumeric segments joined by "_" (e.g. Course1_Lesson1_Intro or VID_1700000000000).
VIDEO_ID_PATTERN = r"[A-Za-z0-9]+(?:[_-][A-Za-z0-9]+)*"
TEMP_STEM_PATTERN = re.compile(rf"^(?P<video_id>{VIDEO_ID_PATTERN})$")
PUBLISHED_STEM_PATTERN = re.compile(
    rf"^(?P<video_id>{VIDEO_ID_PATTERN})_(?P<language>[a-z]{{2,3}}(?:-[A-Za-z0-9]{{2,8}})?)$"
)


def temp_artifact_name(video_id: str, extension: str = ".vtt") -> str:
    return f"{video_id}{extension}"


def published_artifact_name(video_id: str, language: str, extension: str = ".vtt") -> str:
    return f"{video_id}_{language}{extension}"


def is_valid_video_id(video_id: str) -> bool:
    return bool(TEMP_STEM_PATTERN.match(video_id or ""))


class ArtifactLocator:
    """Read-only view over the three caption stores. Missing directories list as empty."""

    def __init__(
        self,
        temp_dir: Path,
        published_dir: Path,
        registry: Optional[CaptionRegistry] = None,
        extension: str = ".vtt",
        validate_cue_files: bool = False,
    ):
        self.temp_dir = Path(temp_dir)
        self.published_dir = Path(published_dir)
        self.registry = registry
        self.extension = extension.lower()
        self.validate_cue_files = validate_cue_files
        self.unparseable: List[UnparseableArtifact] = []

    def _iter_cue_files(self, directory: Path) -> Iterator[Path]:
        if not directory.is_dir():
            LOGGER.debug("Directory %s does not exist; treating as empty", directory)
            return
        for path in sorted(directory.iterdir()):
            if path.name.startswith(".") or not path.is_file():
                continue
            if path.suffix.lower() != self.extension:
                continue
            yield path

    def _flag(self, path: Path, location: str, reason: str) -> None:
        LOGGER.debug("Unparseable %s artifact %s: %s", location, path.name, reason)
        self.unparseable = [item for item in self.unparseable if item.path != path]
        self.unparseable.append(UnparseableArtifact(path=path, location=location, reason=reason))

    def list_temp_artifacts(self) -> Dict[str, TempArtifact]:
        self.unparseable = [item for item in self.unparseable if item.location != "temp"]
        artifacts: Dict[str, TempArtifact] = {}
        for path in self._iter_cue_files(self.temp_dir):
            match = TEMP_STEM_PATTERN.match(path.stem)
            if not match:
                self._flag(path, "temp", "name does not match {video_id}" + self.extension)
                continue
            if self.validate_cue_files and not is_valid_cue_file(path):
                self._flag(path, "temp", "invalid cue document")
                continue
            artifacts[match.group("video_id")] = TempArtifact(video_id=match.group("video_id"), path=path)
        return artifacts

    def list_published_artifacts(self) -> Dict[str, PublishedArtifact]:
        self.unparseable = [item for item in self.unparseable if item.location != "published"]
        artifacts: Dict[str, PublishedArtifact] = {}
        for path in self._iter_cue_files(self.published_dir):
            match = PUBLISHED_STEM_PATTERN.match(path.stem)
            if not match:
                self._flag(path, "published", "name does not match {video_id}_{language}" + self.extension)
                continue
            artifact = PublishedArtifact(
                video_id=match.group("video_id"),
                language=match.group("language"),
                path=path,
            )
            artifacts[artifact.key] = artifact
        return artifacts

    def list_registry_records(self) -> List[CaptionRecord]:
        if self.registry is None:
            return []
        return list(self.registry.list_all())

    def temp_path(self, video_id: str) -> Path:
        return self.temp_dir / temp_artifact_name(video_id, self.extension)

    def published_path(self, video_id: str, language: str) -> Path:
        return self.published_dir / published_artifact_name(video_id, language, self.extension)
