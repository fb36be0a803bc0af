from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from models.email_message import StoredMessage

LOGGER = logging.getLogger(__name__)

# Named filters over the tag column; NULL tags means the message was never classified.
MESSAGE_FILTERS: Dict[str, str] = {
    "clean": "tags = '[]'",
    "suspicious": "tags IS NOT NULL AND tags != '[]'",
    "untagged": "tags IS NULL",
}

_COLUMNS = "id, gmail_id, data, tags, tagged_at, received_at"


class MessageStore:
    """SQLite-backed store of Gmail messages and their classification tags."""

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    gmail_id TEXT NOT NULL UNIQUE,
                    data TEXT NOT NULL,
                    tags TEXT,
                    tagged_at TEXT,
                    received_at TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_messages_received
                ON messages(received_at)
                """
            )

    def has_message(self, gmail_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM messages WHERE gmail_id=?", (gmail_id,)).fetchone()
        return row is not None

    def known_ids(self, gmail_ids: Iterable[str]) -> Set[str]:
        wanted = list(gmail_ids)
        known: Set[str] = set()
        if not wanted:
            return known
        with self._connect() as conn:
            # keep well below SQLite's bound-parameter limit
            for start in range(0, len(wanted), 500):
                chunk = wanted[start : start + 500]
                placeholders = ", ".join("?" for _ in chunk)
                rows = conn.execute(
                    f"SELECT gmail_id FROM messages WHERE gmail_id IN ({placeholders})",
                    chunk,
                ).fetchall()
                known.update(row[0] for row in rows)
        return known

    def save_message(self, data: Mapping[str, Any]) -> int:
        gmail_id = data.get("id")
        if not gmail_id:
            raise ValueError("message lacks id")
        received_at = _received_at(data)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO messages(gmail_id, data, received_at)
                VALUES (?, ?, ?)
                """,
                (gmail_id, json.dumps(data), received_at.isoformat() if received_at else None),
            )
            row = conn.execute("SELECT id FROM messages WHERE gmail_id=?", (gmail_id,)).fetchone()
        LOGGER.debug("Stored message %s as row %s", gmail_id, row[0])
        return row[0]

    def get(self, row_id: int) -> Optional[StoredMessage]:
        with self._connect() as conn:
            row = conn.execute(f"SELECT {_COLUMNS} FROM messages WHERE id=?", (row_id,)).fetchone()
        return _to_message(row) if row else None

    def untagged(self, limit: int) -> List[StoredMessage]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM messages WHERE tags IS NULL ORDER BY id LIMIT ?",
                (limit,),
            ).fetchall()
        return [_to_message(row) for row in rows]

    def save_tags(self, row_id: int, tags: Sequence[str]) -> None:
        """Overwrite the tags of a message. Re-running classification replaces, never merges."""

        timestamp = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE messages SET tags=?, tagged_at=? WHERE id=?",
                (json.dumps(list(tags)), timestamp, row_id),
            )
        if cursor.rowcount == 0:
            raise KeyError(f"No stored message with id {row_id}")

    def clear_tags(self) -> int:
        with self._connect() as conn:
            cursor = conn.execute("UPDATE messages SET tags=NULL, tagged_at=NULL WHERE tags IS NOT NULL")
        LOGGER.info("Cleared tags on %s messages", cursor.rowcount)
        return cursor.rowcount

    def list_messages(
        self, filter_name: Optional[str] = None, limit: int = 10, offset: int = 0
    ) -> List[StoredMessage]:
        where = _where_clause(filter_name)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM messages {where} ORDER BY received_at DESC, id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
        return [_to_message(row) for row in rows]

    def count(self, filter_name: Optional[str] = None) -> int:
        where = _where_clause(filter_name)
        with self._connect() as conn:
            row = conn.execute(f"SELECT COUNT(*) FROM messages {where}").fetchone()
        return row[0]


def _where_clause(filter_name: Optional[str]) -> str:
    if not filter_name:
        return ""
    if filter_name not in MESSAGE_FILTERS:
        known = ", ".join(MESSAGE_FILTERS)
        raise ValueError(f"Expected filter to be one of {known}, but found {filter_name}")
    return f"WHERE {MESSAGE_FILTERS[filter_name]}"


def _received_at(data: Mapping[str, Any]) -> Optional[datetime]:
    internal_date = data.get("internalDate")
    if not internal_date:
        return None
    try:
        return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        LOGGER.debug("Unable to parse internalDate: %s", internal_date)
        return None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _to_message(row: Sequence[Any]) -> StoredMessage:
    return StoredMessage(
        id=row[0],
        gmail_id=row[1],
        data=json.loads(row[2]),
        tags=json.loads(row[3]) if row[3] is not None else None,
        tagged_at=_parse_timestamp(row[4]),
        received_at=_parse_timestamp(row[5]),
    )
