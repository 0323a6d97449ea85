"""PinStore: CRUD for semantic pins.

Pins are curated and low volume. Nothing here expires or evicts them; their
lifecycle belongs to whoever creates them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatmem.db import connect
from chatmem.memory.models import DEFAULT_PIN_IMPORTANCE, PinType, SemanticPin

if TYPE_CHECKING:
    from pathlib import Path

    from chatmem.memory.cache import ReadCache

logger = logging.getLogger(__name__)

_PIN_COLUMNS = (
    "id, session_id, content, source_message_id, importance_score, pin_type, created_at"
)


class PinStore:
    """Persists semantic pins in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None, cache: ReadCache | None = None) -> None:
        self._db_path = db_path
        self._cache = cache

    async def create(
        self,
        session_id: str,
        content: str,
        *,
        source_message_id: int | None = None,
        importance_score: float | None = None,
        pin_type: PinType = "manual",
    ) -> SemanticPin:
        """Insert a new pin and return it."""
        pin = SemanticPin(
            session_id=session_id,
            content=content,
            source_message_id=source_message_id,
            importance_score=(
                DEFAULT_PIN_IMPORTANCE if importance_score is None else importance_score
            ),
            pin_type=pin_type,
        )
        async with connect(self._db_path) as db:
            await db.execute(
                f"INSERT INTO semantic_pins ({_PIN_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                pin.to_row(),
            )
            await db.commit()
        if self._cache is not None:
            self._cache.invalidate(session_id)
        logger.info("Pinned [%s] %s: %s", pin_type, pin.id, content[:80])
        return pin

    async def top_pins(self, session_id: str, limit: int) -> list[SemanticPin]:
        """Return up to *limit* pins by importance desc, then recency desc."""
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                f"""
                SELECT {_PIN_COLUMNS} FROM semantic_pins
                WHERE session_id = ?
                ORDER BY importance_score DESC, created_at DESC
                LIMIT ?
                """,
                (session_id, limit),
            )
            rows = await cursor.fetchall()
        return [SemanticPin.from_row(row) for row in rows]

    async def has_pin_for_message(self, session_id: str, message_id: int) -> bool:
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT 1 FROM semantic_pins WHERE session_id = ? AND source_message_id = ?",
                (session_id, message_id),
            )
            row = await cursor.fetchone()
        return row is not None

    async def count(self, session_id: str) -> int:
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM semantic_pins WHERE session_id = ?", (session_id,)
            )
            row = await cursor.fetchone()
        return row[0]
