"""MessageStore: ordered per-session message log, summaries and session bindings.

Messages are only ever appended. Their autoincrement ``id`` is the ordering
key; ``created_at`` is recorded for display and for ``message_count_since``.
Every write calls ``cache.invalidate(session_id)`` before returning.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatmem.db import connect
from chatmem.memory.models import (
    NEUTRAL_IMPORTANCE,
    ConversationSummary,
    MemoryStats,
    Message,
    Role,
    utc_now,
)

if TYPE_CHECKING:
    from pathlib import Path

    from chatmem.memory.cache import ReadCache

logger = logging.getLogger(__name__)

_MESSAGE_COLUMNS = (
    "id, session_id, role, text, model_id, token_usage, created_at, importance_score"
)
_SUMMARY_COLUMNS = (
    "id, session_id, summary, message_count, start_message_id, end_message_id, "
    "importance_score, created_at"
)


class MessageStore:
    """Persists messages and conversation summaries in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None, cache: ReadCache | None = None) -> None:
        self._db_path = db_path
        self._cache = cache

    def _invalidate(self, session_id: str) -> None:
        if self._cache is not None:
            self._cache.invalidate(session_id)

    # -- Messages --------------------------------------------------------------

    async def append_message(
        self,
        session_id: str,
        role: Role,
        text: str,
        *,
        model_id: str | None = None,
        token_usage: int | None = None,
        importance_score: float = NEUTRAL_IMPORTANCE,
    ) -> Message:
        """Append a message to the session log and return the stored record.

        The record is validated before the INSERT, so a bad role raises
        ``pydantic.ValidationError`` and nothing is written.
        """
        draft = Message(
            id=0,
            session_id=session_id,
            role=role,
            text=text,
            model_id=model_id,
            token_usage=token_usage,
            created_at=utc_now(),
            importance_score=importance_score,
        )
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO messages
                    (session_id, role, text, model_id, token_usage, created_at,
                     importance_score)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    draft.session_id,
                    draft.role,
                    draft.text,
                    draft.model_id,
                    draft.token_usage,
                    draft.created_at,
                    draft.importance_score,
                ),
            )
            await db.commit()
            message_id = cursor.lastrowid
        self._invalidate(session_id)
        logger.debug("Appended %s message %s to session %s", role, message_id, session_id)
        return draft.model_copy(update={"id": message_id})

    async def recent_messages(
        self, session_id: str, limit: int, skip_newest: int = 1
    ) -> list[Message]:
        """Return up to *limit* recent messages, oldest first.

        The newest *skip_newest* rows are excluded; by default that is the
        just-submitted current turn, which must not be echoed back.
        """
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                f"""
                SELECT * FROM (
                    SELECT {_MESSAGE_COLUMNS} FROM messages
                    WHERE session_id = ?
                    ORDER BY id DESC
                    LIMIT ? OFFSET ?
                ) ORDER BY id ASC
                """,
                (session_id, limit, skip_newest),
            )
            rows = await cursor.fetchall()
        return [Message.from_row(row) for row in rows]

    async def messages_in_range(
        self, session_id: str, start_id: int, end_id: int
    ) -> list[Message]:
        """Return messages with ``start_id <= id <= end_id``, oldest first."""
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM messages
                WHERE session_id = ? AND id BETWEEN ? AND ?
                ORDER BY id ASC
                """,
                (session_id, start_id, end_id),
            )
            rows = await cursor.fetchall()
        return [Message.from_row(row) for row in rows]

    async def messages_after(
        self, session_id: str, message_id: int | None, limit: int | None = None
    ) -> list[Message]:
        """Return messages newer than *message_id* (all when None), oldest first."""
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM messages
                WHERE session_id = ? AND id > ?
                ORDER BY id ASC
                LIMIT ?
                """,
                (session_id, message_id or 0, -1 if limit is None else limit),
            )
            rows = await cursor.fetchall()
        return [Message.from_row(row) for row in rows]

    async def all_messages(self, session_id: str) -> list[Message]:
        return await self.messages_after(session_id, None)

    async def message_count_since(self, session_id: str, timestamp: str) -> int:
        """Count messages created strictly after the ISO *timestamp*."""
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM messages WHERE session_id = ? AND created_at > ?",
                (session_id, timestamp),
            )
            row = await cursor.fetchone()
        return row[0]

    async def message_count_after(self, session_id: str, message_id: int | None) -> int:
        """Count messages newer than *message_id* (all when None)."""
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM messages WHERE session_id = ? AND id > ?",
                (session_id, message_id or 0),
            )
            row = await cursor.fetchone()
        return row[0]

    async def count_messages(self, session_id: str) -> int:
        return await self.message_count_after(session_id, None)

    async def update_importance(self, session_id: str, message_id: int, score: float) -> None:
        """Persist a recomputed importance score for one message."""
        async with connect(self._db_path) as db:
            await db.execute(
                "UPDATE messages SET importance_score = ? WHERE id = ? AND session_id = ?",
                (score, message_id, session_id),
            )
            await db.commit()
        self._invalidate(session_id)

    # -- Summaries -------------------------------------------------------------

    async def add_summary(self, summary: ConversationSummary) -> ConversationSummary:
        """Insert a summary. Summaries are never updated afterwards."""
        async with connect(self._db_path) as db:
            await db.execute(
                f"""
                INSERT INTO conversation_summaries ({_SUMMARY_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                summary.to_row(),
            )
            await db.commit()
        self._invalidate(summary.session_id)
        logger.info(
            "Stored summary %s for session %s (messages %d-%d)",
            summary.id,
            summary.session_id,
            summary.start_message_id,
            summary.end_message_id,
        )
        return summary

    async def recent_summaries(self, session_id: str, limit: int) -> list[ConversationSummary]:
        """Return up to *limit* summaries, newest first."""
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                f"""
                SELECT {_SUMMARY_COLUMNS} FROM conversation_summaries
                WHERE session_id = ?
                ORDER BY created_at DESC, end_message_id DESC
                LIMIT ?
                """,
                (session_id, limit),
            )
            rows = await cursor.fetchall()
        return [ConversationSummary.from_row(row) for row in rows]

    async def last_summary(self, session_id: str) -> ConversationSummary | None:
        summaries = await self.recent_summaries(session_id, 1)
        return summaries[0] if summaries else None

    # -- Session bindings ------------------------------------------------------

    async def bind_session_model(self, session_id: str, model_id: str | None) -> None:
        """Record which chat model a session is bound to."""
        async with connect(self._db_path) as db:
            await db.execute(
                """
                INSERT INTO sessions (id, model, created_at) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET model = excluded.model
                """,
                (session_id, model_id, utc_now()),
            )
            await db.commit()
        self._invalidate(session_id)

    async def session_model(self, session_id: str) -> str | None:
        async with connect(self._db_path) as db:
            cursor = await db.execute("SELECT model FROM sessions WHERE id = ?", (session_id,))
            row = await cursor.fetchone()
        return row[0] if row else None

    # -- Diagnostics -----------------------------------------------------------

    async def stats(self, session_id: str) -> MemoryStats:
        """Aggregate counts across messages, summaries and pins for a session."""
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                """
                SELECT COUNT(*), MIN(created_at), MAX(created_at), AVG(importance_score)
                FROM messages WHERE session_id = ?
                """,
                (session_id,),
            )
            total, oldest, newest, average = await cursor.fetchone()
            cursor = await db.execute(
                "SELECT COUNT(*) FROM conversation_summaries WHERE session_id = ?",
                (session_id,),
            )
            (summaries,) = await cursor.fetchone()
            cursor = await db.execute(
                "SELECT COUNT(*) FROM semantic_pins WHERE session_id = ?", (session_id,)
            )
            (pins,) = await cursor.fetchone()
        return MemoryStats(
            total_messages=total,
            total_summaries=summaries,
            total_pins=pins,
            oldest_message=oldest,
            newest_message=newest,
            average_importance=round(average or 0.0, 3),
        )
