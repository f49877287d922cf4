"""Import step: promote temp cue files into the published directory and register them.

For every temp artifact whose video exists, the cue file is copied to
``{published_dir}/{video_id}_{language}.vtt`` (write-new-then-rename) and the
registry row is upserted. The temp file is left in place; the cleanup command
removes it later as stale.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set

from .locator import ArtifactLocator, published_artifact_name
from .models import CaptionRecord, TempArtifact
from .registry import CaptionRegistry, VideoCatalog

LOGGER = logging.getLogger("caption_pipeline.importer")

IMPORTED = "imported"
WOULD_IMPORT = "would_import"
SKIPPED_UNKNOWN_VIDEO = "video not in database"
SKIPPED_EXISTS = "caption already exists"
FAILED = "failed"


@dataclass(frozen=True)
class ImportResult:
    video_id: str
    status: str
    target_path: Optional[Path] = None
    file_path: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ImportSummary:
    results: List[ImportResult] = field(default_factory=list)

    def count(self, *statuses: str) -> int:
        return sum(1 for result in self.results if result.status in statuses)

    @property
    def imported(self) -> int:
        return self.count(IMPORTED, WOULD_IMPORT)

    @property
    def skipped(self) -> int:
        return self.count(SKIPPED_UNKNOWN_VIDEO, SKIPPED_EXISTS)

    @property
    def failed(self) -> int:
        return self.count(FAILED)


def copy_atomic(source: Path, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=".", suffix=".tmp")
    os.close(tmp_fd)
    tmp_path = Path(tmp_name)
    try:
        shutil.copyfile(source, tmp_path)
        tmp_path.replace(target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def import_artifact(
    artifact: TempArtifact,
    published_dir: Path,
    registry: CaptionRegistry,
    known_video_ids: Set[str],
    language: str = "en",
    dry_run: bool = False,
    overwrite: bool = False,
    extension: str = ".vtt",
) -> ImportResult:
    video_id = artifact.video_id
    if video_id not in known_video_ids:
        LOGGER.warning("Video %s not found in database, skipping", video_id)
        return ImportResult(video_id, SKIPPED_UNKNOWN_VIDEO)

    existing = [record for record in registry.list_by_video(video_id) if record.language == language]
    if existing and not overwrite:
        LOGGER.info("Caption already exists for %s (%s), skipping", video_id, language)
        return ImportResult(video_id, SKIPPED_EXISTS, file_path=existing[0].file_path)

    target_name = published_artifact_name(video_id, language, extension)
    target_path = published_dir / target_name
    file_path = f"captions/{target_name}"

    if dry_run:
        LOGGER.info("[DRY RUN] Would import %s -> %s (%s)", artifact.path.name, target_path, file_path)
        return ImportResult(video_id, WOULD_IMPORT, target_path, file_path)

    try:
        copy_atomic(artifact.path, target_path)
        registry.upsert(CaptionRecord(video_id=video_id, language=language, file_path=file_path))
    except Exception as exc:
        LOGGER.error("Error importing %s: %s", artifact.path.name, exc)
        return ImportResult(video_id, FAILED, target_path, file_path, error=str(exc))

    LOGGER.info("Imported %s -> %s", artifact.path.name, target_path)
    return ImportResult(video_id, IMPORTED, target_path, file_path)


def import_temp_artifacts(
    locator: ArtifactLocator,
    registry: CaptionRegistry,
    video_catalog: VideoCatalog,
    language: str = "en",
    dry_run: bool = False,
    overwrite: bool = False,
) -> ImportSummary:
    """Import every valid temp cue file. One failing file never stops the rest."""
    known_video_ids = set(video_catalog.list_video_ids())
    summary = ImportSummary()
    for artifact in locator.list_temp_artifacts().values():
        summary.results.append(
            import_artifact(
                artifact,
                locator.published_dir,
                registry,
                known_video_ids,
                language=language,
                dry_run=dry_run,
                overwrite=overwrite,
                extension=locator.extension,
            )
        )
    return summary
