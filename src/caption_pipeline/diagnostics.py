"""Read-only diagnostic report over the caption stores."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .locator import ArtifactLocator
from .models import Video
from .reconciler import ReconciliationReport, reconcile
from .registry import VideoCatalog


@dataclass(frozen=True)
class RecordFileCheck:
    video_id: str
    language: str
    file_path: str
    expected_path: Path
    exists: bool


@dataclass
class DiagnosticReport:
    video_id: Optional[str]
    counts: Dict[str, int]
    reconciliation: ReconciliationReport
    record_checks: List[RecordFileCheck] = field(default_factory=list)
    unparseable: List[Dict[str, str]] = field(default_factory=list)
    video: Optional[Video] = None
    video_found: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "video_id": self.video_id,
            "counts": dict(self.counts),
            "reconciliation": self.reconciliation.to_dict(),
            "record_checks": [
                {
                    "video_id": check.video_id,
                    "language": check.language,
                    "file_path": check.file_path,
                    "expected_path": str(check.expected_path),
                    "exists": check.exists,
                }
                for check in self.record_checks
            ],
            "unparseable": list(self.unparseable),
            "video": asdict(self.video) if self.video else None,
            "video_found": self.video_found,
        }


def build_report(
    locator: ArtifactLocator,
    video_catalog: VideoCatalog,
    video_id: Optional[str] = None,
) -> DiagnosticReport:
    """
    Snapshot the registry and both directories and reconcile them.

    When `video_id` is given every list is narrowed to that video and the video
    row itself is looked up. Nothing is modified.
    """
    video_ids = list(video_catalog.list_video_ids())
    records = locator.list_registry_records()
    temp = locator.list_temp_artifacts()
    published = locator.list_published_artifacts()

    counts = {
        "videos": len(video_ids),
        "captions": len(records),
        "temp_files": len(temp),
        "published_files": len(published),
        "unparseable_files": len(locator.unparseable),
    }

    video: Optional[Video] = None
    video_found: Optional[bool] = None
    if video_id is not None:
        video = video_catalog.get_video(video_id)
        video_found = video is not None
        video_ids = [vid for vid in video_ids if vid == video_id]
        records = [record for record in records if record.video_id == video_id]
        temp = {key: artifact for key, artifact in temp.items() if artifact.video_id == video_id}
        published = {key: artifact for key, artifact in published.items() if artifact.video_id == video_id}

    report = reconcile(records, temp, published, video_ids, published_dir=locator.published_dir, extension=locator.extension)

    checks = []
    for record in records:
        expected = locator.published_path(record.video_id, record.language)
        checks.append(
            RecordFileCheck(
                video_id=record.video_id,
                language=record.language,
                file_path=record.file_path,
                expected_path=expected,
                exists=expected.is_file(),
            )
        )

    unparseable = [
        {"path": str(item.path), "location": item.location, "reason": item.reason}
        for item in locator.unparseable
    ]

    return DiagnosticReport(
        video_id=video_id,
        counts=counts,
        reconciliation=report,
        record_checks=checks,
        unparseable=unparseable,
        video=video,
        video_found=video_found,
    )
