"""Append-only JSONL logs used for batch manifests and the cleanup audit trail."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional


def human_time() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class Manifest:
    """Append-only JSONL manifest with in-memory lookup by `key_field`."""

    def __init__(self, path: Path, key_field: str = "video_id"):
        self.path = Path(path)
        self.key_field = key_field
        self.lock = threading.Lock()
        self.records: Dict[str, Dict] = {}
        for record in self.read():
            key = record.get(self.key_field)
            if key:
                self.records[str(key)] = record

    def read(self) -> List[Dict]:
        if not self.path.exists():
            return []
        records: List[Dict] = []
        with self.path.open("r", encoding="utf-8") as manifest_file:
            for line in manifest_file:
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(record, dict):
                    records.append(record)
        return records

    def get(self, key: str) -> Optional[Dict]:
        return self.records.get(key)

    def append(self, record: Dict) -> None:
        with self.lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as manifest_file:
                manifest_file.write(json.dumps(record, ensure_ascii=False) + "\n")
            key = record.get(self.key_field)
            if key:
                self.records[str(key)] = record
