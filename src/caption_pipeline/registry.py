"""Caption registry and video catalog collaborators.

The pipeline only ever talks to the registry through :class:`CaptionRegistry`
(``list_all``, ``list_by_video``, ``upsert``) and to the externally owned video
table through :class:`VideoCatalog`. :class:`SQLiteRegistry` implements both on
a single SQLite file; every mutation is one parameterised statement.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Protocol

from .models import CaptionRecord, Video


class CaptionRegistry(Protocol):
    def list_all(self) -> List[CaptionRecord]:
        ...

    def list_by_video(self, video_id: str) -> List[CaptionRecord]:
        ...

    def upsert(self, record: CaptionRecord) -> None:
        ...


class VideoCatalog(Protocol):
    def list_video_ids(self) -> List[str]:
        ...

    def get_video(self, video_id: str) -> Optional[Video]:
        ...


SCHEMA = """
CREATE TABLE IF NOT EXISTS videos (
    video_id TEXT PRIMARY KEY,
    title TEXT,
    status TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS captions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    video_id TEXT NOT NULL,
    language TEXT NOT NULL,
    file_path TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (video_id, language)
);

CREATE INDEX IF NOT EXISTS idx_captions_video ON captions(video_id);
"""


class SQLiteRegistry:
    """SQLite-backed caption registry and read-only video catalog."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> "SQLiteRegistry":
        with self.connection() as conn:
            conn.executescript(SCHEMA)
        return self

    def list_all(self) -> List[CaptionRecord]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT video_id, language, file_path FROM captions ORDER BY video_id, language"
            ).fetchall()
        return [CaptionRecord(row["video_id"], row["language"], row["file_path"]) for row in rows]

    def list_by_video(self, video_id: str) -> List[CaptionRecord]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT video_id, language, file_path FROM captions WHERE video_id = ? ORDER BY language",
                (video_id,),
            ).fetchall()
        return [CaptionRecord(row["video_id"], row["language"], row["file_path"]) for row in rows]

    def upsert(self, record: CaptionRecord) -> None:
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO captions (video_id, language, file_path)
                VALUES (?, ?, ?)
                ON CONFLICT(video_id, language) DO UPDATE SET file_path = excluded.file_path
                """,
                (record.video_id, record.language, record.file_path),
            )

    def list_video_ids(self) -> List[str]:
        with self.connection() as conn:
            rows = conn.execute("SELECT video_id FROM videos ORDER BY video_id").fetchall()
        return [row["video_id"] for row in rows]

    def get_video(self, video_id: str) -> Optional[Video]:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT video_id, title, status FROM videos WHERE video_id = ?",
                (video_id,),
            ).fetchone()
        if row is None:
            return None
        return Video(row["video_id"], row["title"], row["status"])

    def add_video(self, video: Video) -> None:
        """Seed helper for local setups and tests; the pipeline itself never writes videos."""
        with self.connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO videos (video_id, title, status) VALUES (?, ?, ?)",
                (video.video_id, video.title, video.status),
            )


def open_registry(db_path: Path) -> SQLiteRegistry:
    return SQLiteRegistry(db_path).initialize()
