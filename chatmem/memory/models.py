"""Data models for messages, summaries, pins and assembled context."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]
PinType = Literal["manual", "auto"]

NEUTRAL_IMPORTANCE = 0.5
SUMMARY_IMPORTANCE = 0.7
DEFAULT_PIN_IMPORTANCE = 0.8


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


def make_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


class Message(BaseModel):
    """A single conversation message, immutable once written."""

    model_config = ConfigDict(frozen=True)

    id: int
    session_id: str
    role: Role
    text: str
    model_id: str | None = None
    token_usage: int | None = None
    created_at: str
    importance_score: float = NEUTRAL_IMPORTANCE

    @classmethod
    def from_row(cls, row: tuple) -> Message:
        """Build from a ``messages`` row in column order."""
        return cls(
            id=row[0],
            session_id=row[1],
            role=row[2],
            text=row[3],
            model_id=row[4],
            token_usage=row[5],
            created_at=row[6],
            importance_score=row[7],
        )


class ConversationSummary(BaseModel):
    """A compressed summary of an inclusive range of message ids."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: make_id("summary"))
    session_id: str
    summary: str
    message_count: int
    start_message_id: int
    end_message_id: int
    importance_score: float = SUMMARY_IMPORTANCE
    created_at: str = Field(default_factory=utc_now)

    def to_row(self) -> tuple:
        return (
            self.id,
            self.session_id,
            self.summary,
            self.message_count,
            self.start_message_id,
            self.end_message_id,
            self.importance_score,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ConversationSummary:
        return cls(
            id=row[0],
            session_id=row[1],
            summary=row[2],
            message_count=row[3],
            start_message_id=row[4],
            end_message_id=row[5],
            importance_score=row[6],
            created_at=row[7],
        )


class SemanticPin(BaseModel):
    """A curated fact kept regardless of recency.

    ``source_message_id`` is a weak reference; the message may have left the
    rolling window and is never looked up.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: make_id("pin"))
    session_id: str
    content: str
    source_message_id: int | None = None
    importance_score: float = DEFAULT_PIN_IMPORTANCE
    pin_type: PinType = "manual"
    created_at: str = Field(default_factory=utc_now)

    def to_row(self) -> tuple:
        return (
            self.id,
            self.session_id,
            self.content,
            self.source_message_id,
            self.importance_score,
            self.pin_type,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> SemanticPin:
        return cls(
            id=row[0],
            session_id=row[1],
            content=row[2],
            source_message_id=row[3],
            importance_score=row[4],
            pin_type=row[5],
            created_at=row[6],
        )


class MemoryContext(BaseModel):
    """Request-scoped result of context assembly.

    ``total_tokens`` may exceed ``budget`` when the mandatory recent messages
    alone do not fit; callers decide what to do with an over-budget context.
    """

    recent_messages: list[Message] = Field(default_factory=list)
    semantic_pins: list[SemanticPin] = Field(default_factory=list)
    summaries: list[ConversationSummary] = Field(default_factory=list)
    total_tokens: int = 0
    budget: int = 0
    truncated: bool = False

    @property
    def over_budget(self) -> bool:
        return self.total_tokens > self.budget

    def to_api_messages(self) -> list[dict[str, str]]:
        """Format the recent messages for a chat completion call."""
        return [
            {"role": m.role, "content": m.text}
            for m in self.recent_messages
            if m.role != "system"
        ]

    def render_memory(self) -> str:
        """Format pins and summaries for injection into the system prompt."""
        sections = []
        if self.semantic_pins:
            lines = ["## Pinned Facts\n"]
            for pin in self.semantic_pins:
                lines.append(f"- [{pin.pin_type}] {pin.content}")
            sections.append("\n".join(lines))
        if self.summaries:
            lines = ["## Earlier In This Conversation\n"]
            for summary in reversed(self.summaries):
                lines.append(f"- {summary.summary}")
            sections.append("\n".join(lines))
        return "\n\n".join(sections)


class MemoryStats(BaseModel):
    """Per-session counts for diagnostics."""

    total_messages: int = 0
    total_summaries: int = 0
    total_pins: int = 0
    oldest_message: str | None = None
    newest_message: str | None = None
    average_importance: float = 0.0
