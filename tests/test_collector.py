#!/usr/bin/env python3
"""Unit tests for temp artifact garbage collection."""

import json
import tempfile
from pathlib import Path
from unittest import mock

from caption_pipeline.collector import GarbageCollector, Outcome
from caption_pipeline.manifest import Manifest
from caption_pipeline.reconciler import ReconciliationReport, reconcile

CUE = "WEBVTT\n\n1\n00:00:00.000 --> 00:00:01.000\nHello\n"


def _layout(root: Path):
    temp = root / "subtitles"
    published = root / "captions"
    temp.mkdir()
    published.mkdir()
    for name in ("V1.vtt", "V2.vtt", "V3.vtt"):
        (temp / name).write_text(CUE, encoding="utf-8")
    (published / "V2_en.vtt").write_text(CUE, encoding="utf-8")
    return temp, published


class TestGarbageCollector:
    """Tests for GarbageCollector."""

    def test_only_reported_files_deleted(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            temp, published = _layout(Path(tmpdir))
            report = ReconciliationReport(stale_temp_artifacts=["V2"], orphaned_temp_artifacts=[])

            result = GarbageCollector(temp).collect(report)

            assert [item.candidate.video_id for item in result.deleted] == ["V2"]
            assert sorted(p.name for p in temp.iterdir()) == ["V1.vtt", "V3.vtt"]
            assert (published / "V2_en.vtt").exists()
            assert not result.has_failures
        print("✓ test_only_reported_files_deleted passed")

    def test_dry_run_reports_same_candidates_without_deleting(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            temp, _ = _layout(Path(tmpdir))
            report = reconcile([], ["V1.vtt", "V2.vtt", "V3.vtt"], ["V2_en.vtt"], ["V1"])
            collector = GarbageCollector(temp)

            dry = collector.collect(report, dry_run=True)
            assert [o.outcome for o in dry.outcomes] == [Outcome.WOULD_DELETE, Outcome.WOULD_DELETE]
            assert sorted(p.name for p in temp.iterdir()) == ["V1.vtt", "V2.vtt", "V3.vtt"]

            real = collector.collect(report)
            assert real.candidate_paths == dry.candidate_paths
            assert [c.reason for c in real.candidates] == ["stale", "orphaned"]
            assert sorted(p.name for p in temp.iterdir()) == ["V1.vtt"]
        print("✓ test_dry_run_reports_same_candidates_without_deleting passed")

    def test_missing_file_is_already_gone(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            report = ReconciliationReport(orphaned_temp_artifacts=["V7"])
            result = GarbageCollector(Path(tmpdir)).collect(report)
            assert [o.outcome for o in result.outcomes] == [Outcome.ALREADY_GONE]
            assert not result.has_failures
        print("✓ test_missing_file_is_already_gone passed")

    def test_unsafe_video_id_refused(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            temp = root / "subtitles"
            temp.mkdir()
            victim = root / "keep.vtt"
            victim.write_text(CUE, encoding="utf-8")

            report = ReconciliationReport(orphaned_temp_artifacts=["../keep"])
            result = GarbageCollector(temp).collect(report)

            assert [o.outcome for o in result.outcomes] == [Outcome.DELETE_FAILED]
            assert victim.exists()
            assert result.has_failures
        print("✓ test_unsafe_video_id_refused passed")

    def test_symlinked_artifact_removes_only_link(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            temp = root / "subtitles"
            temp.mkdir()
            target = root / "shared" / "V2.vtt"
            target.parent.mkdir()
            target.write_text(CUE, encoding="utf-8")
            (temp / "V2.vtt").symlink_to(target)

            result = GarbageCollector(temp).collect(ReconciliationReport(stale_temp_artifacts=["V2"]))

            assert [o.outcome for o in result.outcomes] == [Outcome.DELETED]
            assert not (temp / "V2.vtt").is_symlink()
            assert target.read_text(encoding="utf-8") == CUE
        print("✓ test_symlinked_artifact_removes_only_link passed")

    def test_delete_error_reported_and_others_continue(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            temp, _ = _layout(Path(tmpdir))
            report = ReconciliationReport(stale_temp_artifacts=["V1", "V2"])
            original_unlink = Path.unlink

            def flaky_unlink(self, *args, **kwargs):
                if self.name == "V1.vtt":
                    raise PermissionError("read-only")
                return original_unlink(self, *args, **kwargs)

            with mock.patch.object(Path, "unlink", flaky_unlink):
                result = GarbageCollector(temp).collect(report)

            assert [o.outcome for o in result.outcomes] == [Outcome.DELETE_FAILED, Outcome.DELETED]
            assert "read-only" in result.failed[0].error
            assert (temp / "V1.vtt").exists()
            assert not (temp / "V2.vtt").exists()
        print("✓ test_delete_error_reported_and_others_continue passed")

    def test_audit_log_records_every_outcome(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            temp, _ = _layout(Path(tmpdir))
            audit_path = Path(tmpdir) / "logs" / "audit.jsonl"
            report = ReconciliationReport(stale_temp_artifacts=["V2"], orphaned_temp_artifacts=["V8"])

            GarbageCollector(temp, audit_log=Manifest(audit_path)).collect(report)

            lines = [json.loads(line) for line in audit_path.read_text(encoding="utf-8").splitlines()]
            assert [(r["video_id"], r["outcome"], r["reason"]) for r in lines] == [
                ("V2", "deleted", "stale"),
                ("V8", "already_gone", "orphaned"),
            ]
            assert all(r["dry_run"] is False for r in lines)
            assert set(lines[0]) == {"video_id", "path", "reason", "outcome", "error", "dry_run", "recorded_at"}
        print("✓ test_audit_log_records_every_outcome passed")
