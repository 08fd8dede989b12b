"""RecordStore — aiosqlite CRUD for the four personal record kinds."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiosqlite

from lumina.config import settings
from lumina.store.models import (
    ChatMessage,
    JournalEntry,
    Record,
    RecordKind,
    ScheduleItem,
    Transaction,
    kind_of,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    amount REAL NOT NULL,
    kind TEXT NOT NULL,
    category TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    occurred_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schedule_items (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    date TEXT NOT NULL,
    time TEXT NOT NULL,
    reminder_minutes INTEGER
);

CREATE TABLE IF NOT EXISTS journal_entries (
    id TEXT PRIMARY KEY,
    content TEXT NOT NULL,
    mood TEXT NOT NULL,
    occurred_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS chat_messages (
    id TEXT PRIMARY KEY,
    text TEXT NOT NULL,
    is_from_user INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    persona TEXT
);
"""


@dataclass(frozen=True)
class _Table:
    name: str
    model: type
    order_by: str


_TABLES: dict[RecordKind, _Table] = {
    RecordKind.TRANSACTION: _Table("transactions", Transaction, "occurred_at DESC, rowid DESC"),
    RecordKind.SCHEDULE: _Table("schedule_items", ScheduleItem, "date ASC, time ASC, rowid ASC"),
    RecordKind.JOURNAL: _Table("journal_entries", JournalEntry, "occurred_at DESC, rowid DESC"),
    RecordKind.CHAT: _Table("chat_messages", ChatMessage, "timestamp DESC, rowid DESC"),
}

_TRIM_CHAT = """
DELETE FROM chat_messages WHERE id NOT IN (
    SELECT id FROM chat_messages ORDER BY timestamp DESC, rowid DESC LIMIT ?
)
"""


class StorageUnavailableError(RuntimeError):
    """The record store is not initialised or its database cannot be opened."""


class RecordStore:
    """Persists transactions, schedule items, journal entries and chat messages.

    Call ``await init()`` once before any other operation. Pass an explicit
    *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).

    Records are created once and never updated. Chat messages are capped
    at *chat_limit*; every insert evicts the oldest beyond that cap in the
    same commit.
    """

    def __init__(self, db_path: Path | None = None, *, chat_limit: int | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._chat_limit = chat_limit or settings.chat_retention_limit
        self._initialised = False

    @property
    def initialised(self) -> bool:
        return self._initialised

    # -- Internal helpers ------------------------------------------------------

    async def _open(self) -> aiosqlite.Connection:
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            return await aiosqlite.connect(str(self._db_path))
        except (OSError, sqlite3.Error) as exc:
            msg = f"Cannot open record database at {self._db_path}"
            raise StorageUnavailableError(msg) from exc

    async def _connect(self) -> aiosqlite.Connection:
        if not self._initialised:
            msg = "Record store not initialised — call init() first"
            raise StorageUnavailableError(msg)
        return await self._open()

    # -- Lifecycle -------------------------------------------------------------

    async def init(self) -> None:
        """Create the record tables if needed. Safe to call repeatedly."""
        db = await self._open()
        try:
            await db.executescript(_CREATE_TABLES)
            await db.commit()
        finally:
            await db.close()
        self._initialised = True
        logger.info("Record store ready at %s", self._db_path)

    # -- CRUD ------------------------------------------------------------------

    async def create(self, record: Record) -> str:
        """Insert a record and return its ID."""
        kind = kind_of(record)
        table = _TABLES[kind]
        columns = ", ".join(record.COLUMNS)
        placeholders = ", ".join("?" for _ in record.COLUMNS)
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO {table.name} ({columns}) VALUES ({placeholders})",  # noqa: S608
                record.to_row(),
            )
            if kind is RecordKind.CHAT:
                cursor = await db.execute(_TRIM_CHAT, (self._chat_limit,))
                if cursor.rowcount > 0:
                    logger.debug("Evicted %d old chat message(s)", cursor.rowcount)
            await db.commit()
            logger.info("Created %s record %s", kind, record.id)
            return record.id
        finally:
            await db.close()

    async def list_records(self, kind: RecordKind, *, limit: int | None = None) -> list:
        """Return all records of *kind* in the kind's natural order.

        Transactions and journal entries come newest-first, schedule items
        soonest-first, chat messages newest-first.
        """
        table = _TABLES[RecordKind(kind)]
        sql = (
            f"SELECT {', '.join(table.model.COLUMNS)} FROM {table.name} "  # noqa: S608
            f"ORDER BY {table.order_by}"
        )
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        db = await self._connect()
        try:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
            return [table.model.from_row(row) for row in rows]
        finally:
            await db.close()

    async def get(self, kind: RecordKind, record_id: str) -> Record | None:
        """Fetch a record by ID, or None if not found."""
        table = _TABLES[RecordKind(kind)]
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {', '.join(table.model.COLUMNS)} FROM {table.name} WHERE id = ?",  # noqa: S608
                (record_id,),
            )
            row = await cursor.fetchone()
            return table.model.from_row(row) if row else None
        finally:
            await db.close()

    async def delete(self, kind: RecordKind, record_id: str) -> bool:
        """Delete a record by ID. Returns True if a row was removed."""
        table = _TABLES[RecordKind(kind)]
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"DELETE FROM {table.name} WHERE id = ?",  # noqa: S608
                (record_id,),
            )
            await db.commit()
            deleted = cursor.rowcount > 0
            if deleted:
                logger.info("Deleted %s record %s", kind, record_id)
            return deleted
        finally:
            await db.close()

    async def clear(self) -> None:
        """Delete every record of every kind."""
        db = await self._connect()
        try:
            for table in _TABLES.values():
                await db.execute(f"DELETE FROM {table.name}")  # noqa: S608
            await db.commit()
            logger.info("Cleared all records")
        finally:
            await db.close()

    # -- Convenience -----------------------------------------------------------

    async def recent_chat(self, limit: int) -> list[ChatMessage]:
        """The newest *limit* chat messages, oldest first."""
        newest_first = await self.list_records(RecordKind.CHAT, limit=limit)
        return list(reversed(newest_first))

    async def transactions(self) -> list[Transaction]:
        return await self.list_records(RecordKind.TRANSACTION)

    async def schedule_items(self) -> list[ScheduleItem]:
        return await self.list_records(RecordKind.SCHEDULE)

    async def journal_entries(self) -> list[JournalEntry]:
        return await self.list_records(RecordKind.JOURNAL)
