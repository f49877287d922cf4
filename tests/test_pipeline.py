#!/usr/bin/env python3
"""Unit tests for single-video generation and the batch driver."""

import contextlib
import json
import tempfile
from pathlib import Path
from unittest import mock

import pytest

from caption_pipeline.config import PipelineConfig
from caption_pipeline.errors import EmptyTranscriptionError, ExternalToolError, NotFoundError
from caption_pipeline.manifest import Manifest
from caption_pipeline.models import Segment, Video
from caption_pipeline.pipeline import BatchSummary, discover_video_jobs, generate, run_batch

CUE = "WEBVTT\n\n1\n00:00:00.000 --> 00:00:01.000\nExisting\n"


class FakeTranscriber:
    name = "fake"

    def __init__(self, segments=None, error=None):
        self.segments = segments if segments is not None else [Segment(0, 1500, "Hello"), Segment(1500, 3000, "World")]
        self.error = error
        self.calls = []

    def transcribe(self, audio_path, options):
        self.calls.append((audio_path, options))
        if self.error is not None:
            raise self.error
        return list(self.segments)


class FakeCatalog:
    def __init__(self, video_ids):
        self.video_ids = list(video_ids)

    def list_video_ids(self):
        return list(self.video_ids)

    def get_video(self, video_id):
        return Video(video_id) if video_id in self.video_ids else None


@contextlib.contextmanager
def fake_audio(video_path, sample_rate=16000, ffmpeg_bin="ffmpeg", work_dir=None):
    yield Path(str(video_path) + ".wav")


def _config(root: Path, **overrides) -> PipelineConfig:
    values = dict(
        upload_dir=root / "upload",
        temp_dir=root / "subtitles",
        published_dir=root / "captions",
        database=root / "captions.db",
        manifest=root / "manifest.jsonl",
        audit_log=root / "audit.jsonl",
    )
    values.update(overrides)
    return PipelineConfig(**values)


class TestGenerate:
    """Tests for generate()."""

    def test_writes_cue_file_next_to_video(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            video = Path(tmpdir) / "lesson.mp4"
            video.write_bytes(b"video")
            transcriber = FakeTranscriber()

            with mock.patch("caption_pipeline.pipeline.temporary_audio", fake_audio):
                output = generate(video, transcriber=transcriber, model="small", language="en")

            assert output == Path(tmpdir) / "lesson.vtt"
            assert output.read_text(encoding="utf-8") == (
                "WEBVTT\n\n1\n00:00:00.000 --> 00:00:01.500\nHello\n\n"
                "2\n00:00:01.500 --> 00:00:03.000\nWorld\n\n"
            )
            options = transcriber.calls[0][1]
            assert (options.model, options.language) == ("small", "en")
        print("✓ test_writes_cue_file_next_to_video passed")

    def test_missing_video(self):
        with pytest.raises(NotFoundError):
            generate(Path("/nonexistent/video.mp4"), transcriber=FakeTranscriber())
        print("✓ test_missing_video passed")

    def test_existing_output_skips_all_tools(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            video = Path(tmpdir) / "lesson.mp4"
            video.write_bytes(b"video")
            output = Path(tmpdir) / "lesson.vtt"
            output.write_text(CUE, encoding="utf-8")
            transcriber = FakeTranscriber()

            with mock.patch("caption_pipeline.audio.subprocess.run") as run, \
                    mock.patch("caption_pipeline.transcription.subprocess.run") as whisper_run:
                assert generate(video, transcriber=transcriber) == output

            run.assert_not_called()
            whisper_run.assert_not_called()
            assert transcriber.calls == []
            assert output.read_text(encoding="utf-8") == CUE
        print("✓ test_existing_output_skips_all_tools passed")

    def test_truncated_output_is_regenerated(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            video = Path(tmpdir) / "lesson.mp4"
            video.write_bytes(b"video")
            output = Path(tmpdir) / "lesson.vtt"
            output.write_text("WEBVTT\n\n1\n00:00:00.0", encoding="utf-8")
            transcriber = FakeTranscriber()

            with mock.patch("caption_pipeline.pipeline.temporary_audio", fake_audio):
                generate(video, transcriber=transcriber)

            assert len(transcriber.calls) == 1
            assert "Hello" in output.read_text(encoding="utf-8")
        print("✓ test_truncated_output_is_regenerated passed")

    def test_empty_transcription_writes_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            video = Path(tmpdir) / "lesson.mp4"
            video.write_bytes(b"video")

            with mock.patch("caption_pipeline.pipeline.temporary_audio", fake_audio):
                with pytest.raises(EmptyTranscriptionError):
                    generate(video, transcriber=FakeTranscriber(segments=[Segment(0, 10, " ")]))

            assert not (Path(tmpdir) / "lesson.vtt").exists()
        print("✓ test_empty_transcription_writes_nothing passed")


class TestDiscoverVideoJobs:
    def test_filters_extensions_ids_and_catalog(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            upload = Path(tmpdir) / "upload"
            upload.mkdir()
            for name in ("V1.mp4", "V2.MP4", "V3.mov", "bad name.mp4", "V4.mp4"):
                (upload / name).write_bytes(b"x")

            jobs = discover_video_jobs(upload, Path(tmpdir) / "subtitles", [".mp4"], FakeCatalog(["V1", "V2"]))

            assert [job.video_id for job in jobs] == ["V1", "V2"]
            assert jobs[0].output_path == Path(tmpdir) / "subtitles" / "V1.vtt"
        print("✓ test_filters_extensions_ids_and_catalog passed")

    def test_missing_upload_dir(self):
        with pytest.raises(NotFoundError):
            discover_video_jobs(Path("/nonexistent/upload"), Path("/tmp"), [".mp4"])
        print("✓ test_missing_upload_dir passed")


class TestRunBatch:
    """Tests for run_batch()."""

    def test_processes_skips_and_records_failures(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            config = _config(root)
            config.upload_dir.mkdir()
            for vid in ("V1", "V2", "V3", "V4"):
                (config.upload_dir / f"{vid}.mp4").write_bytes(b"video")
            config.temp_dir.mkdir()
            (config.temp_dir / "V2.vtt").write_text(CUE, encoding="utf-8")
            config.published_dir.mkdir()
            (config.published_dir / "V3_en.vtt").write_text(CUE, encoding="utf-8")

            class SelectiveTranscriber(FakeTranscriber):
                def transcribe(self, audio_path, options):
                    if "V4" in str(audio_path):
                        raise ExternalToolError("Whisper", "Whisper failed")
                    return super().transcribe(audio_path, options)

            manifest = Manifest(config.manifest)
            with mock.patch("caption_pipeline.pipeline.temporary_audio", fake_audio), \
                    mock.patch("caption_pipeline.pipeline.probe_duration", return_value=12.0):
                summary = run_batch(config, transcriber=SelectiveTranscriber(), manifest=manifest)

            assert (summary.processed, summary.skipped, summary.failed) == (1, 2, 1)
            assert not summary.ok
            assert (config.temp_dir / "V1.vtt").exists()
            assert not (config.temp_dir / "V4.vtt").exists()
            assert (config.temp_dir / "V2.vtt").read_text(encoding="utf-8") == CUE

            records = [json.loads(line) for line in config.manifest.read_text(encoding="utf-8").splitlines()]
            by_id = {r["video_id"]: r for r in records}
            assert by_id["V1"]["status"] == "success"
            assert by_id["V1"]["duration"] == 12.0
            assert by_id["V4"]["status"] == "error"
            assert by_id["V4"]["error_type"] == "ExternalToolError"
        print("✓ test_processes_skips_and_records_failures passed")

    def test_unexpected_error_does_not_abort_batch(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = _config(Path(tmpdir))
            config.upload_dir.mkdir()
            for vid in ("V1", "V2"):
                (config.upload_dir / f"{vid}.mp4").write_bytes(b"video")

            class CrashingTranscriber(FakeTranscriber):
                def transcribe(self, audio_path, options):
                    if "V1" in str(audio_path):
                        raise RuntimeError("CUDA out of memory")
                    return super().transcribe(audio_path, options)

            manifest = Manifest(config.manifest)
            with mock.patch("caption_pipeline.pipeline.temporary_audio", fake_audio), \
                    mock.patch("caption_pipeline.pipeline.probe_duration", return_value=None):
                summary = run_batch(config, transcriber=CrashingTranscriber(), manifest=manifest)

            assert (summary.processed, summary.failed) == (1, 1)
            assert (config.temp_dir / "V2.vtt").exists()
            assert not (config.temp_dir / "V1.vtt").exists()

            records = [json.loads(line) for line in config.manifest.read_text(encoding="utf-8").splitlines()]
            by_id = {r["video_id"]: r for r in records}
            assert by_id["V1"]["status"] == "error"
            assert by_id["V1"]["error_type"] == "RuntimeError"
            assert "CUDA out of memory" in by_id["V1"]["error"]
        print("✓ test_unexpected_error_does_not_abort_batch passed")

    def test_force_and_max_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = _config(Path(tmpdir))
            config.upload_dir.mkdir()
            for vid in ("V1", "V2", "V3"):
                (config.upload_dir / f"{vid}.mp4").write_bytes(b"video")
            config.temp_dir.mkdir()
            (config.temp_dir / "V1.vtt").write_text(CUE, encoding="utf-8")
            transcriber = FakeTranscriber()

            with mock.patch("caption_pipeline.pipeline.temporary_audio", fake_audio), \
                    mock.patch("caption_pipeline.pipeline.probe_duration", return_value=None):
                summary = run_batch(config, transcriber=transcriber, force=True, max_files=2)

            assert summary.processed == 2
            assert summary.skipped == 0
            assert len(transcriber.calls) == 2
            assert "Hello" in (config.temp_dir / "V1.vtt").read_text(encoding="utf-8")
        print("✓ test_force_and_max_files passed")

    def test_parallel_workers(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = _config(Path(tmpdir))
            config.upload_dir.mkdir()
            for vid in ("V1", "V2", "V3", "V4"):
                (config.upload_dir / f"{vid}.mp4").write_bytes(b"video")

            with mock.patch("caption_pipeline.pipeline.temporary_audio", fake_audio), \
                    mock.patch("caption_pipeline.pipeline.probe_duration", return_value=None):
                summary = run_batch(config, transcriber=FakeTranscriber(), workers=3)

            assert summary.processed == 4
            assert sorted(p.name for p in config.temp_dir.iterdir()) == ["V1.vtt", "V2.vtt", "V3.vtt", "V4.vtt"]
        print("✓ test_parallel_workers passed")

    def test_summary_counts(self):
        summary = BatchSummary()
        summary.record({"status": "success"})
        summary.record({"status": "skipped"})
        summary.record({"status": "error"})
        assert (summary.processed, summary.skipped, summary.failed) == (1, 1, 1)
        print("✓ test_summary_counts passed")
