"""Set-difference audit between the caption registry, temp artifacts and published artifacts.

:func:`reconcile` is a pure function over three snapshots plus the list of
known video ids. It never raises: anything it cannot interpret becomes a
:class:`DataIntegrityWarning` on the report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from .errors import DataIntegrityWarning
from .locator import PUBLISHED_STEM_PATTERN, TEMP_STEM_PATTERN, published_artifact_name
from .models import CaptionRecord, PublishedArtifact, TempArtifact


@dataclass
class ReconciliationReport:
    videos_without_captions: List[str] = field(default_factory=list)
    published_without_registry: List[str] = field(default_factory=list)
    stale_temp_artifacts: List[str] = field(default_factory=list)
    orphaned_temp_artifacts: List[str] = field(default_factory=list)
    registry_without_file: List[CaptionRecord] = field(default_factory=list)
    warnings: List[DataIntegrityWarning] = field(default_factory=list)

    @property
    def deletable_temp_artifacts(self) -> List[str]:
        """Stale first, then orphaned. A video id never appears twice."""
        seen: Set[str] = set()
        ordered: List[str] = []
        for video_id in list(self.stale_temp_artifacts) + list(self.orphaned_temp_artifacts):
            if video_id not in seen:
                seen.add(video_id)
                ordered.append(video_id)
        return ordered

    def summary(self) -> Dict[str, int]:
        return {
            "videos_without_captions": len(self.videos_without_captions),
            "published_without_registry": len(self.published_without_registry),
            "stale_temp_artifacts": len(self.stale_temp_artifacts),
            "orphaned_temp_artifacts": len(self.orphaned_temp_artifacts),
            "registry_without_file": len(self.registry_without_file),
            "warnings": len(self.warnings),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "videos_without_captions": list(self.videos_without_captions),
            "published_without_registry": list(self.published_without_registry),
            "stale_temp_artifacts": list(self.stale_temp_artifacts),
            "orphaned_temp_artifacts": list(self.orphaned_temp_artifacts),
            "registry_without_file": [
                {"video_id": r.video_id, "language": r.language, "file_path": r.file_path}
                for r in self.registry_without_file
            ],
            "warnings": [str(w) for w in self.warnings],
        }


def _items(value: Any) -> List[Any]:
    """Flatten a mapping (values) or iterable into a list. Scalars and None become empty or single lists."""
    if value is None:
        return []
    if isinstance(value, Mapping):
        return list(value.values())
    if isinstance(value, (str, bytes)):
        return [value]
    try:
        return list(value)
    except TypeError:
        return [value]


def _coerce_record(item: Any) -> Optional[CaptionRecord]:
    if isinstance(item, CaptionRecord):
        return item
    if isinstance(item, Mapping):
        video_id = item.get("video_id")
        language = item.get("language")
        file_path = item.get("file_path") or ""
    else:
        video_id = getattr(item, "video_id", None)
        language = getattr(item, "language", None)
        file_path = getattr(item, "file_path", None) or ""
    if not isinstance(video_id, str) or not video_id or not isinstance(language, str) or not language:
        return None
    return CaptionRecord(video_id=video_id, language=language, file_path=str(file_path))


def _coerce_temp(item: Any) -> Optional[str]:
    if isinstance(item, TempArtifact):
        return item.video_id
    if isinstance(item, Path):
        item = item.name
    if isinstance(item, str):
        stem = item[: -len(Path(item).suffix)] if Path(item).suffix else item
        match = TEMP_STEM_PATTERN.match(stem)
        return match.group("video_id") if match else None
    video_id = getattr(item, "video_id", None)
    return video_id if isinstance(video_id, str) and video_id else None


def _coerce_published(item: Any) -> Optional[Tuple[str, str]]:
    if isinstance(item, PublishedArtifact):
        return item.video_id, item.language
    if isinstance(item, Path):
        item = item.name
    if isinstance(item, str):
        stem = item[: -len(Path(item).suffix)] if Path(item).suffix else item
        match = PUBLISHED_STEM_PATTERN.match(stem)
        return (match.group("video_id"), match.group("language")) if match else None
    video_id = getattr(item, "video_id", None)
    language = getattr(item, "language", None)
    if isinstance(video_id, str) and video_id and isinstance(language, str) and language:
        return video_id, language
    return None


def reconcile(
    registry_records: Any,
    temp_artifacts: Any,
    published_artifacts: Any,
    all_video_ids: Any,
    published_dir: Optional[Path] = None,
    extension: str = ".vtt",
) -> ReconciliationReport:
    """
    Compare the three caption stores and classify every mismatch.

    Parameters:
        registry_records: CaptionRecord objects (or dicts with video_id/language/file_path).
        temp_artifacts: Temp artifacts keyed by video id, TempArtifact objects, or file names.
        published_artifacts: Published artifacts keyed by "{video_id}_{language}", PublishedArtifact objects, or file names.
        all_video_ids: Ids of the videos that currently exist.
        published_dir: When given, a registry record whose file is not in the snapshot is also checked on disk.

    Returns:
        A ReconciliationReport with sorted lists. A temp artifact that is both stale
        and orphaned is reported only as stale.
    """
    report = ReconciliationReport()
    warn = report.warnings.append

    video_ids: Set[str] = set()
    for item in _items(all_video_ids):
        if isinstance(item, str) and item:
            video_ids.add(item)
        else:
            warn(DataIntegrityWarning("malformed-video-id", repr(item), "ignored video id that is not a non-empty string"))

    records: Dict[Tuple[str, str], CaptionRecord] = {}
    for item in _items(registry_records):
        record = _coerce_record(item)
        if record is None:
            warn(DataIntegrityWarning("malformed-record", repr(item), "registry row without video_id/language"))
            continue
        key = (record.video_id, record.language)
        if key in records:
            warn(DataIntegrityWarning("duplicate-record", record.key, "registry holds more than one row for this video/language"))
            continue
        records[key] = record

    temp_ids: Set[str] = set()
    for item in _items(temp_artifacts):
        video_id = _coerce_temp(item)
        if video_id is None:
            warn(DataIntegrityWarning("unparseable-temp", repr(item), "temp artifact name does not yield a video id"))
            continue
        temp_ids.add(video_id)

    published: Set[Tuple[str, str]] = set()
    for item in _items(published_artifacts):
        key = _coerce_published(item)
        if key is None:
            warn(DataIntegrityWarning("unparseable-published", repr(item), "published artifact name does not yield video id and language"))
            continue
        published.add(key)

    captioned_ids = {video_id for video_id, _ in records}
    published_ids = {video_id for video_id, _ in published}

    report.videos_without_captions = sorted(video_ids - captioned_ids)

    report.published_without_registry = sorted(
        f"{video_id}_{language}" for video_id, language in published if (video_id, language) not in records
    )
    for key in report.published_without_registry:
        warn(DataIntegrityWarning("published-without-registry", key, "published caption file has no registry row"))

    report.stale_temp_artifacts = sorted(temp_ids & published_ids)
    report.orphaned_temp_artifacts = sorted((temp_ids - video_ids) - published_ids)

    missing: List[CaptionRecord] = []
    for key, record in sorted(records.items()):
        if key in published:
            continue
        if published_dir is not None:
            expected = Path(published_dir) / published_artifact_name(record.video_id, record.language, extension)
            if expected.is_file():
                continue
        missing.append(record)
        warn(DataIntegrityWarning("registry-without-file", record.key, f"expected published file is missing ({record.file_path})"))
    report.registry_without_file = missing

    return report
