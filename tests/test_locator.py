#!/usr/bin/env python3
"""Unit tests for artifact enumeration and name parsing."""

import tempfile
from pathlib import Path

from caption_pipeline.locator import (
    ArtifactLocator,
    is_valid_video_id,
    published_artifact_name,
    temp_artifact_name,
)
from caption_pipeline.models import CaptionRecord

CUE = "WEBVTT\n\n1\n00:00:00.000 --> 00:00:01.000\nHello\n"


class FakeRegistry:
    def __init__(self, records):
        self.records = records

    def list_all(self):
        return list(self.records)

    def list_by_video(self, video_id):
        return [r for r in self.records if r.video_id == video_id]

    def upsert(self, record):
        self.records.append(record)


def _touch(path: Path, content: str = CUE) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class TestNames:
    def test_artifact_names(self):
        assert temp_artifact_name("V1") == "V1.vtt"
        assert published_artifact_name("Course1_Lesson1_Intro", "en") == "Course1_Lesson1_Intro_en.vtt"
        print("✓ test_artifact_names passed")

    def test_valid_video_ids(self):
        assert is_valid_video_id("V1")
        assert is_valid_video_id("VID_1700000000000")
        assert is_valid_video_id("Course1_Lesson1_Intro")
        assert not is_valid_video_id("")
        assert not is_valid_video_id("../etc/passwd")
        assert not is_valid_video_id("bad name")
        assert not is_valid_video_id("_leading")
        print("✓ test_valid_video_ids passed")


class TestArtifactLocator:
    """Tests for ArtifactLocator."""

    def test_missing_directories_are_empty(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            locator = ArtifactLocator(Path(tmpdir) / "temp", Path(tmpdir) / "published")
            assert locator.list_temp_artifacts() == {}
            assert locator.list_published_artifacts() == {}
            assert locator.list_registry_records() == []
        print("✓ test_missing_directories_are_empty passed")

    def test_lists_temp_artifacts(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            temp = Path(tmpdir) / "temp"
            _touch(temp / "V1.vtt")
            _touch(temp / "VID_1700000000000.vtt")
            _touch(temp / ".V9.vtt.tmp")
            _touch(temp / "notes.txt")
            _touch(temp / "bad name.vtt")
            (temp / "dir.vtt").mkdir()

            locator = ArtifactLocator(temp, Path(tmpdir) / "published")
            artifacts = locator.list_temp_artifacts()

            assert sorted(artifacts) == ["V1", "VID_1700000000000"]
            assert artifacts["V1"].path == temp / "V1.vtt"
            assert [item.path.name for item in locator.unparseable] == ["bad name.vtt"]
            assert locator.unparseable[0].location == "temp"
        print("✓ test_lists_temp_artifacts passed")

    def test_lists_published_artifacts(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            published = Path(tmpdir) / "published"
            _touch(published / "V1_en.vtt")
            _touch(published / "Course1_Lesson1_Intro_es.vtt")
            _touch(published / "V2_pt-BR.vtt")
            _touch(published / "nolanguage.vtt")

            locator = ArtifactLocator(Path(tmpdir) / "temp", published)
            artifacts = locator.list_published_artifacts()

            assert sorted(artifacts) == ["Course1_Lesson1_Intro_es", "V1_en", "V2_pt-BR"]
            assert artifacts["Course1_Lesson1_Intro_es"].video_id == "Course1_Lesson1_Intro"
            assert artifacts["Course1_Lesson1_Intro_es"].language == "es"
            assert artifacts["V2_pt-BR"].language == "pt-BR"
            assert [item.path.name for item in locator.unparseable] == ["nolanguage.vtt"]
        print("✓ test_lists_published_artifacts passed")

    def test_validation_flags_invalid_cue_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            temp = Path(tmpdir) / "temp"
            _touch(temp / "V1.vtt")
            _touch(temp / "V2.vtt", "")
            _touch(temp / "V3.vtt", "WEBVTT\n\n1\n00:00:00.000 --> 00:0")

            locator = ArtifactLocator(temp, Path(tmpdir) / "published", validate_cue_files=True)
            assert list(locator.list_temp_artifacts()) == ["V1"]
            assert sorted(item.path.name for item in locator.unparseable) == ["V2.vtt", "V3.vtt"]

            assert sorted(ArtifactLocator(temp, Path(tmpdir) / "published").list_temp_artifacts()) == ["V1", "V2", "V3"]
        print("✓ test_validation_flags_invalid_cue_files passed")

    def test_registry_records_and_paths(self):
        records = [CaptionRecord("V1", "en", "captions/V1_en.vtt")]
        locator = ArtifactLocator(Path("/data/temp"), Path("/data/published"), registry=FakeRegistry(records))
        assert locator.list_registry_records() == records
        assert locator.temp_path("V1") == Path("/data/temp/V1.vtt")
        assert locator.published_path("V1", "en") == Path("/data/published/V1_en.vtt")
        print("✓ test_registry_records_and_paths passed")
