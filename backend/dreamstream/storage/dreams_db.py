# ------------------------------------------------------------
# Module: dreamstream/storage/dreams_db.py
# Purpose: SQLite-backed saved-dream store (the persistence collaborator).
# ------------------------------------------------------------

"""Local persistence for interpreted dreams.

Responsibilities
----------------
- Initialize and maintain the dreams table (idempotent DDL).
- `save()` one record per completed interpretation, deriving tags and mood.
- List / get / update / delete records for history views.

Notes
-----
- `created_at` is an ISO-8601 UTC string; lists are newest first.
- WAL mode lets a reader list history while a save is in progress.
- Calls are blocking; async callers off-load them with `asyncio.to_thread`.
"""

from __future__ import annotations

import json
import logging
import random
import sqlite3
import string
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from dreamstream.utils.timing import log_timer

from .derive import detect_mood, extract_tags

log = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


class StorageError(Exception):
    """Raised when a dream cannot be written or removed."""


@dataclass(frozen=True)
class SavedDreamRecord:
    """One stored dream; read-only once created."""

    id: str
    original_text: str
    formatted_interpretation: str
    created_at: str
    derived_tags: list[str] = field(default_factory=list)
    derived_mood: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "originalText": self.original_text,
            "formattedInterpretation": self.formatted_interpretation,
            "createdAt": self.created_at,
            "derivedTags": list(self.derived_tags),
            "derivedMood": self.derived_mood,
        }


class DreamStore(Protocol):
    """What the client core needs from storage."""

    def save(self, original_text: str, formatted_interpretation: str) -> SavedDreamRecord: ...


def new_dream_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"dream_{int(time.time() * 1000)}_{suffix}"


def _row_to_record(row: sqlite3.Row) -> SavedDreamRecord:
    try:
        tags = json.loads(row["tags_json"]) if row["tags_json"] else []
    except json.JSONDecodeError:
        tags = []
    return SavedDreamRecord(
        id=row["id"],
        original_text=row["content"],
        formatted_interpretation=row["interpretation"],
        created_at=row["created_at"],
        derived_tags=tags,
        derived_mood=row["mood"],
    )


class SqliteDreamStore:
    """Dream history in a single SQLite file."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        con = sqlite3.connect(self.db_path.as_posix(), timeout=30)
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA journal_mode=WAL;")
        con.execute("PRAGMA synchronous=NORMAL;")
        return con

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Connection scoped to one transaction; committed on success, always closed."""
        con = self._connect()
        try:
            with con:
                yield con
        finally:
            con.close()

    def ensure_initialized(self) -> None:
        """Create the dreams table and index if missing (idempotent)."""
        if self._initialized:
            return
        with self._session() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS dreams (
                    id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    interpretation TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    tags_json TEXT,
                    mood TEXT
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_dreams_created ON dreams(created_at);")
        self._initialized = True

    def save(self, original_text: str, formatted_interpretation: str) -> SavedDreamRecord:
        self.ensure_initialized()
        record = SavedDreamRecord(
            id=new_dream_id(),
            original_text=original_text,
            formatted_interpretation=formatted_interpretation,
            created_at=datetime.now(timezone.utc).isoformat(),
            derived_tags=extract_tags(original_text, formatted_interpretation),
            derived_mood=detect_mood(formatted_interpretation),
        )
        try:
            with log_timer("dreams.save", log, id=record.id), self._session() as con:
                con.execute(
                    "INSERT INTO dreams (id, content, interpretation, created_at, tags_json, mood)"
                    " VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        record.id,
                        record.original_text,
                        record.formatted_interpretation,
                        record.created_at,
                        json.dumps(record.derived_tags, ensure_ascii=False),
                        record.derived_mood,
                    ),
                )
        except sqlite3.Error as e:
            raise StorageError("Unen tallennus epäonnistui") from e
        return record

    def list_dreams(self) -> list[SavedDreamRecord]:
        self.ensure_initialized()
        with self._session() as con:
            rows = con.execute(
                "SELECT * FROM dreams ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def get_dream(self, dream_id: str) -> SavedDreamRecord | None:
        self.ensure_initialized()
        with self._session() as con:
            row = con.execute("SELECT * FROM dreams WHERE id=?", (dream_id,)).fetchone()
        return _row_to_record(row) if row else None

    def update_dream(
        self,
        dream_id: str,
        *,
        content: str | None = None,
        interpretation: str | None = None,
        tags: list[str] | None = None,
        mood: str | None = None,
    ) -> SavedDreamRecord | None:
        """Patch selected columns; returns the updated record or None if unknown."""
        sets: list[str] = []
        params: list = []
        if content is not None:
            sets.append("content=?")
            params.append(content)
        if interpretation is not None:
            sets.append("interpretation=?")
            params.append(interpretation)
        if tags is not None:
            sets.append("tags_json=?")
            params.append(json.dumps(tags, ensure_ascii=False))
        if mood is not None:
            sets.append("mood=?")
            params.append(mood)
        if sets:
            self.ensure_initialized()
            with self._session() as con:
                con.execute(f"UPDATE dreams SET {', '.join(sets)} WHERE id=?", (*params, dream_id))
        return self.get_dream(dream_id)

    def delete_dream(self, dream_id: str) -> bool:
        self.ensure_initialized()
        try:
            with self._session() as con:
                cur = con.execute("DELETE FROM dreams WHERE id=?", (dream_id,))
        except sqlite3.Error as e:
            raise StorageError("Unen poisto epäonnistui") from e
        return cur.rowcount > 0
