# Path: core/storage/sqlite_store.py
# Purpose: Persist solution records in a local SQLite database.
# Layer: core/storage.
# Details: Reference SolutionStore backend; one row per (device_id, image_hash) ordered by timestamp.

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from core.errors import PersistenceUnavailable
from core.models.domain import SolutionRecord
from .base import SolutionStore


class SqliteSolutionStore(SolutionStore):
    """SolutionStore implementation backed by a single SQLite file."""

    def __init__(self, database_path: Path | str, name: str = "sqlite") -> None:
        self.database_path = Path(database_path)
        self.name = name
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self.database_path)
        except sqlite3.Error as exc:
            raise PersistenceUnavailable(f"Failed to access database: {exc}") from exc

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS solutions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    device_id TEXT NOT NULL,
                    image_hash TEXT NOT NULL,
                    image TEXT NOT NULL,
                    solution TEXT NOT NULL,
                    bookmark INTEGER NOT NULL DEFAULT 0,
                    timestamp TEXT NOT NULL,
                    UNIQUE(device_id, image_hash)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_solutions_device_timestamp ON solutions(device_id, timestamp)"
            )
            conn.commit()

    def upsert(self, device_id: str, record: SolutionRecord) -> SolutionRecord:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO solutions (device_id, image_hash, image, solution, bookmark, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(device_id, image_hash) DO UPDATE SET
                        image = excluded.image,
                        solution = excluded.solution,
                        bookmark = excluded.bookmark,
                        timestamp = excluded.timestamp
                    """,
                    (
                        device_id,
                        record.image_hash,
                        record.image_base64,
                        record.solution,
                        int(record.bookmarked),
                        record.created_at.isoformat(timespec="microseconds"),
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceUnavailable(f"Failed to store solution: {exc}") from exc
        return record

    def find_by_hash(self, device_id: str, image_hash: str) -> Optional[SolutionRecord]:
        rows = self._query(
            "SELECT image, image_hash, solution, bookmark, timestamp FROM solutions "
            "WHERE device_id = ? AND image_hash = ?",
            (device_id, image_hash),
        )
        return rows[0] if rows else None

    def list_history(self, device_id: str, bookmarked_only: bool = False, limit: Optional[int] = None) -> List[SolutionRecord]:
        sql = "SELECT image, image_hash, solution, bookmark, timestamp FROM solutions WHERE device_id = ?"
        params: list = [device_id]
        if bookmarked_only:
            sql += " AND bookmark = 1"
        sql += " ORDER BY timestamp DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        return self._query(sql, tuple(params))

    def delete(self, device_id: str, image_hash: str) -> bool:
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    "DELETE FROM solutions WHERE device_id = ? AND image_hash = ?",
                    (device_id, image_hash),
                )
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise PersistenceUnavailable(f"Failed to delete solution: {exc}") from exc

    def _query(self, sql: str, params: tuple) -> List[SolutionRecord]:
        try:
            with self._connect() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceUnavailable(f"Failed to read solutions: {exc}") from exc
        return [
            SolutionRecord(
                image_base64=image,
                image_hash=image_hash,
                solution=solution,
                bookmarked=bool(bookmark),
                created_at=datetime.fromisoformat(timestamp),
            )
            for image, image_hash, solution, bookmark, timestamp in rows
        ]
