#!/usr/bin/env python3
"""Unit tests for the JSONL manifest."""

import json
import re
import tempfile
from pathlib import Path

from caption_pipeline.manifest import Manifest, human_time


class TestManifest:
    """Tests for Manifest."""

    def test_append_and_reload(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "logs" / "manifest.jsonl"
            manifest = Manifest(path)
            manifest.append({"video_id": "V1", "status": "error"})
            manifest.append({"video_id": "V1", "status": "success"})
            manifest.append({"video_id": "V2", "status": "success", "text": "café"})

            reloaded = Manifest(path)
            assert reloaded.get("V1")["status"] == "success"
            assert reloaded.get("V2")["text"] == "café"
            assert len(reloaded.read()) == 3
        print("✓ test_append_and_reload passed")

    def test_skips_corrupt_lines(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "manifest.jsonl"
            path.write_text(json.dumps({"video_id": "V1"}) + "\n{broken\n\n[1, 2]\n", encoding="utf-8")
            manifest = Manifest(path)
            assert manifest.read() == [{"video_id": "V1"}]
            assert manifest.get("V2") is None
        print("✓ test_skips_corrupt_lines passed")

    def test_human_time_format(self):
        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$", human_time())
        print("✓ test_human_time_format passed")
