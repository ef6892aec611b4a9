"""SQLite storage adapter.

Implements the core StoragePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional

from core.models import FrequencyEntry, MessageRecord
from core.ports import StorageError


def _to_db_time(value: datetime) -> str:
    # Stored as UTC ISO strings so lexical order equals time order.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_db_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_record(row: sqlite3.Row) -> MessageRecord:
    return MessageRecord(
        id=row["id"],
        channel_id=row["channel_id"],
        content=row["content"],
        created_at=_from_db_time(row["created_at"]),
    )


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success; sqlite errors become StorageError."""

        try:
            conn = self._connect()
            try:
                with conn:
                    yield conn
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise StorageError(f"SQLite operation failed: {exc}") from exc

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - messages: the target user's message history, one row per message
        - frequency: per-chat reply frequency
        - markov_cache: at most one serialized model snapshot
        """

        with self._transaction() as conn:
            # Fields:
            # - id: "<chat_id>:<message_id>", globally unique (PRIMARY KEY)
            # - channel_id: chat the message was posted in
            # - content: message text as Markdown
            # - created_at: UTC ISO timestamp of the original message
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    channel_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS messages_channel_created "
                "ON messages (channel_id, created_at)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS frequency (
                    channel_id TEXT PRIMARY KEY,
                    frequency INTEGER NOT NULL CHECK (frequency BETWEEN 0 AND 100)
                )
                """
            )
            # The CHECK keeps the table to a single row.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS markov_cache (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    cache TEXT NOT NULL,
                    last_update TIMESTAMP NOT NULL
                )
                """
            )
            # Fields:
            # - source_key: config key of the source chat
            # - synced_until: newest created_at of the last completed sync
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_state (
                    source_key TEXT PRIMARY KEY,
                    synced_until TIMESTAMP NOT NULL
                )
                """
            )

    def insert_messages(self, records: Iterable[MessageRecord]) -> List[MessageRecord]:
        """Insert records in one transaction, ignoring known ids.

        Returns the records that were actually new.
        """

        inserted: List[MessageRecord] = []
        records = list(records)
        if not records:
            return inserted

        with self._transaction() as conn:
            for record in records:
                cur = conn.execute(
                    """
                    INSERT OR IGNORE INTO messages (id, channel_id, content, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (record.id, record.channel_id, record.content, _to_db_time(record.created_at)),
                )
                if cur.rowcount == 1:
                    inserted.append(record)
        return inserted

    def get_messages(self) -> List[MessageRecord]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM messages ORDER BY created_at").fetchall()
        return [_row_to_record(row) for row in rows]

    def get_latest_message(self, channel_id: Optional[str] = None) -> Optional[MessageRecord]:
        """Return the most recent message, optionally within one chat."""

        with self._transaction() as conn:
            if channel_id is None:
                row = conn.execute(
                    "SELECT * FROM messages ORDER BY created_at DESC LIMIT 1"
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT * FROM messages WHERE channel_id = ? ORDER BY created_at DESC LIMIT 1",
                    (channel_id,),
                ).fetchone()
        return _row_to_record(row) if row else None

    def get_frequency(self, channel_id: str) -> Optional[FrequencyEntry]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT channel_id, frequency FROM frequency WHERE channel_id = ?",
                (channel_id,),
            ).fetchone()
        return FrequencyEntry(row["channel_id"], int(row["frequency"])) if row else None

    def set_frequency(self, channel_id: str, frequency: int) -> None:
        """Upsert the reply frequency for a chat."""

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO frequency (channel_id, frequency)
                VALUES (?, ?)
                ON CONFLICT(channel_id) DO UPDATE SET frequency = excluded.frequency
                """,
                (channel_id, frequency),
            )

    def get_markov_cache(self) -> Optional[tuple[str, datetime]]:
        with self._transaction() as conn:
            row = conn.execute("SELECT cache, last_update FROM markov_cache WHERE id = 1").fetchone()
        if not row:
            return None
        return row["cache"], _from_db_time(row["last_update"])

    def save_markov_cache(self, payload: str) -> None:
        """Replace the stored snapshot; the old one is dropped atomically."""

        now = datetime.now(timezone.utc)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO markov_cache (id, cache, last_update)
                VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    cache = excluded.cache,
                    last_update = excluded.last_update
                """,
                (payload, _to_db_time(now)),
            )

    def get_sync_watermark(self, source_key: str) -> Optional[datetime]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT synced_until FROM sync_state WHERE source_key = ?",
                (source_key,),
            ).fetchone()
        return _from_db_time(row["synced_until"]) if row else None

    def set_sync_watermark(self, source_key: str, synced_until: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO sync_state (source_key, synced_until)
                VALUES (?, ?)
                ON CONFLICT(source_key) DO UPDATE SET synced_until = excluded.synced_until
                """,
                (source_key, _to_db_time(synced_until)),
            )

    def count_messages(self) -> int:
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM messages").fetchone()
        return int(row["n"])
