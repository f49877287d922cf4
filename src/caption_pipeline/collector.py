"""Garbage collection of stale and orphaned temp cue files.

Deletion scope is the temp working directory only: published captions and
registry rows are never touched. Each candidate's existence is re-checked
immediately before it is removed and every outcome is appended to an audit log.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .locator import is_valid_video_id, temp_artifact_name
from .manifest import Manifest, human_time
from .reconciler import ReconciliationReport

LOGGER = logging.getLogger("caption_pipeline.collector")


class Outcome(str, enum.Enum):
    DELETED = "deleted"
    ALREADY_GONE = "already_gone"
    DELETE_FAILED = "delete_failed"
    WOULD_DELETE = "would_delete"


@dataclass(frozen=True)
class CandidateArtifact:
    video_id: str
    path: Path
    reason: str  # "stale" or "orphaned"


@dataclass(frozen=True)
class DeletionOutcome:
    candidate: CandidateArtifact
    outcome: Outcome
    error: Optional[str] = None


@dataclass
class CollectionResult:
    dry_run: bool
    candidates: List[CandidateArtifact] = field(default_factory=list)
    outcomes: List[DeletionOutcome] = field(default_factory=list)

    def _with(self, outcome: Outcome) -> List[DeletionOutcome]:
        return [item for item in self.outcomes if item.outcome is outcome]

    @property
    def deleted(self) -> List[DeletionOutcome]:
        return self._with(Outcome.DELETED)

    @property
    def already_gone(self) -> List[DeletionOutcome]:
        return self._with(Outcome.ALREADY_GONE)

    @property
    def failed(self) -> List[DeletionOutcome]:
        return self._with(Outcome.DELETE_FAILED)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def candidate_paths(self) -> List[Path]:
        return [candidate.path for candidate in self.candidates]


class GarbageCollector:
    def __init__(self, temp_dir: Path, extension: str = ".vtt", audit_log: Optional[Manifest] = None):
        self.temp_dir = Path(temp_dir)
        self.extension = extension
        self.audit_log = audit_log

    def candidates(self, report: ReconciliationReport) -> List[CandidateArtifact]:
        stale = set(report.stale_temp_artifacts)
        return [
            CandidateArtifact(
                video_id=video_id,
                path=self.temp_dir / temp_artifact_name(video_id, self.extension),
                reason="stale" if video_id in stale else "orphaned",
            )
            for video_id in report.deletable_temp_artifacts
        ]

    def _inside_temp_dir(self, path: Path) -> bool:
        try:
            return path.parent.resolve() == self.temp_dir.resolve()
        except OSError:
            return False

    def _delete(self, candidate: CandidateArtifact, dry_run: bool) -> DeletionOutcome:
        if not is_valid_video_id(candidate.video_id) or not self._inside_temp_dir(candidate.path):
            return DeletionOutcome(candidate, Outcome.DELETE_FAILED, "refusing to delete outside the temp directory")

        # Re-check right before deleting; another run may have removed it already.
        if not candidate.path.is_file():
            return DeletionOutcome(candidate, Outcome.ALREADY_GONE)

        if dry_run:
            return DeletionOutcome(candidate, Outcome.WOULD_DELETE)

        try:
            candidate.path.unlink()
        except FileNotFoundError:
            return DeletionOutcome(candidate, Outcome.ALREADY_GONE)
        except OSError as exc:
            return DeletionOutcome(candidate, Outcome.DELETE_FAILED, str(exc))
        return DeletionOutcome(candidate, Outcome.DELETED)

    def collect(self, report: ReconciliationReport, dry_run: bool = False) -> CollectionResult:
        result = CollectionResult(dry_run=dry_run, candidates=self.candidates(report))

        for candidate in result.candidates:
            outcome = self._delete(candidate, dry_run)
            result.outcomes.append(outcome)

            if outcome.outcome is Outcome.DELETE_FAILED:
                LOGGER.error("Failed to delete %s: %s", candidate.path, outcome.error)
            else:
                LOGGER.info("%s %s (%s)", outcome.outcome.value, candidate.path.name, candidate.reason)

            if self.audit_log is not None:
                record = {
                    "video_id": candidate.video_id,
                    "path": str(candidate.path),
                    "reason": candidate.reason,
                    "outcome": outcome.outcome.value,
                    "error": outcome.error,
                    "dry_run": dry_run,
                    "recorded_at": human_time(),
                }
                try:
                    self.audit_log.append(record)
                except OSError as exc:
                    LOGGER.warning("Failed to write audit record for %s: %s", candidate.path, exc)

        return result
