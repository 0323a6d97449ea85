"""Async SQLite connection and schema for the memory tables.

Connections are opened per operation with ``aiosqlite``; WAL mode and a busy
timeout let concurrent sessions read while another one writes. Driver errors
are translated into :class:`~chatmem.errors.StoreUnavailable` so callers only
ever handle one failure type.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from chatmem.config import settings
from chatmem.errors import StoreUnavailable

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id         TEXT PRIMARY KEY,
        model      TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id               INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id       TEXT NOT NULL,
        role             TEXT NOT NULL,
        text             TEXT NOT NULL,
        model_id         TEXT,
        token_usage      INTEGER,
        created_at       TEXT NOT NULL,
        importance_score REAL NOT NULL DEFAULT 0.5
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_session ON messages (session_id, id)",
    """
    CREATE TABLE IF NOT EXISTS conversation_summaries (
        id               TEXT PRIMARY KEY,
        session_id       TEXT NOT NULL,
        summary          TEXT NOT NULL,
        message_count    INTEGER NOT NULL,
        start_message_id INTEGER NOT NULL,
        end_message_id   INTEGER NOT NULL,
        importance_score REAL NOT NULL DEFAULT 0.7,
        created_at       TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_summaries_session
        ON conversation_summaries (session_id, created_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS semantic_pins (
        id                TEXT PRIMARY KEY,
        session_id        TEXT NOT NULL,
        content           TEXT NOT NULL,
        source_message_id INTEGER,
        importance_score  REAL NOT NULL DEFAULT 0.8,
        pin_type          TEXT NOT NULL DEFAULT 'manual',
        created_at        TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_pins_session
        ON semantic_pins (session_id, importance_score)
    """,
)

_initialised: set[str] = set()


async def _open(path: Path) -> aiosqlite.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA busy_timeout=5000")
    key = str(path.resolve())
    if key not in _initialised:
        for statement in SCHEMA:
            await db.execute(statement)
        await db.commit()
        _initialised.add(key)
        logger.debug("Initialised memory schema at %s", path)
    return db


@asynccontextmanager
async def connect(db_path: Path | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Yield an open connection, closing it afterwards.

    If *db_path* is given (test isolation) it takes priority over
    ``settings.database_path``.
    """
    path = db_path or settings.database_path
    try:
        db = await _open(path)
    except (sqlite3.Error, OSError) as exc:
        raise StoreUnavailable(f"cannot open {path}: {exc}") from exc
    try:
        yield db
    except (sqlite3.Error, OSError) as exc:
        raise StoreUnavailable(f"query failed on {path}: {exc}") from exc
    finally:
        await db.close()
