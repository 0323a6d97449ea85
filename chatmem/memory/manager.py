"""MemoryManager: the entry point an HTTP or bot layer talks to.

Wires the stores, read cache, scorer, summarizer, context assembler and
auto-summarization trigger together. Collaborators are passed in; use
:meth:`MemoryManager.from_settings` for the default wiring.
"""

from __future__ import annotations

import logging
from pathlib import Path

from chatmem.config import settings
from chatmem.errors import ChatMemoryError
from chatmem.llm.client import AnthropicBackend, CompletionBackend, OllamaBackend
from chatmem.llm.models import ModelRegistry
from chatmem.memory.cache import ReadCache
from chatmem.memory.context import ContextAssembler
from chatmem.memory.models import (
    ConversationSummary,
    MemoryContext,
    MemoryStats,
    Message,
    PinType,
    Role,
    SemanticPin,
)
from chatmem.memory.pins import PinStore
from chatmem.memory.scoring import ImportanceScorer
from chatmem.memory.store import MessageStore
from chatmem.memory.summarizer import ConversationSummarizer
from chatmem.memory.trigger import AutoSummarizer

logger = logging.getLogger(__name__)


class MemoryManager:
    def __init__(
        self,
        store: MessageStore,
        pins: PinStore,
        cache: ReadCache,
        summarizer: ConversationSummarizer,
        *,
        scorer: ImportanceScorer | None = None,
        assembler: ContextAssembler | None = None,
        trigger: AutoSummarizer | None = None,
        auto_pin_threshold: float | None = None,
    ) -> None:
        self.store = store
        self.pins = pins
        self.cache = cache
        self.summarizer = summarizer
        self.scorer = scorer or ImportanceScorer()
        self.assembler = assembler or ContextAssembler(store, pins, cache)
        self.trigger = trigger or AutoSummarizer(store, summarizer)
        self.auto_pin_threshold = (
            settings.auto_pin_threshold if auto_pin_threshold is None else auto_pin_threshold
        )

    @classmethod
    def from_settings(
        cls,
        db_path: Path | None = None,
        *,
        cloud_backend: CompletionBackend | None = None,
        local_backend: OllamaBackend | None = None,
    ) -> MemoryManager:
        """Build the default object graph from ``settings``."""
        cache = ReadCache()
        store = MessageStore(db_path, cache=cache)
        pins = PinStore(db_path, cache=cache)
        registry = ModelRegistry.from_settings()
        summarizer = ConversationSummarizer(
            cloud_backend or AnthropicBackend(),
            local_backend=local_backend or OllamaBackend(),
            registry=registry,
            store=store,
        )
        return cls(store, pins, cache, summarizer)

    # -- Writes ----------------------------------------------------------------

    async def record_message(
        self,
        session_id: str,
        role: Role,
        text: str,
        *,
        model_id: str | None = None,
        token_usage: int | None = None,
    ) -> Message:
        """Score and append a message; a high-scoring user message is auto-pinned."""
        score = self.scorer.score(text, role)
        message = await self.store.append_message(
            session_id,
            role,
            text,
            model_id=model_id,
            token_usage=token_usage,
            importance_score=score,
        )
        try:
            await self._auto_pin(message, score)
        except ChatMemoryError:
            logger.warning("Auto-pin for message %s failed", message.id, exc_info=True)
        return message

    async def _auto_pin(self, message: Message, score: float) -> bool:
        if message.role != "user" or score < self.auto_pin_threshold:
            return False
        if await self.pins.has_pin_for_message(message.session_id, message.id):
            return False
        await self.pins.create(
            message.session_id,
            message.text,
            source_message_id=message.id,
            importance_score=score,
            pin_type="auto",
        )
        return True

    async def create_pin(
        self,
        session_id: str,
        content: str,
        *,
        source_message_id: int | None = None,
        importance_score: float | None = None,
        pin_type: PinType = "manual",
    ) -> SemanticPin:
        return await self.pins.create(
            session_id,
            content,
            source_message_id=source_message_id,
            importance_score=importance_score,
            pin_type=pin_type,
        )

    async def create_summary(
        self, session_id: str, start_message_id: int, end_message_id: int
    ) -> ConversationSummary | None:
        """Summarize an explicit inclusive message range. None if it is empty."""
        messages = await self.store.messages_in_range(
            session_id, start_message_id, end_message_id
        )
        if not messages:
            logger.info(
                "No messages in %d-%d for session %s", start_message_id, end_message_id, session_id
            )
            return None
        return await self.trigger.summarize_range(session_id, messages)

    async def bind_session_model(self, session_id: str, model_id: str | None) -> None:
        await self.store.bind_session_model(session_id, model_id)

    # -- Reads -----------------------------------------------------------------

    async def build_context(self, session_id: str, token_budget: int | None = None) -> MemoryContext:
        return await self.assembler.build_context(session_id, token_budget)

    async def needs_summarization(self, session_id: str) -> bool:
        return await self.trigger.needs_summarization(session_id)

    async def stats(self, session_id: str) -> MemoryStats:
        return await self.store.stats(session_id)

    # -- Maintenance -----------------------------------------------------------

    async def after_turn(self, session_id: str) -> ConversationSummary | None:
        """Post-turn hook: compact history if due. Never raises.

        Call via ``asyncio.create_task(manager.after_turn(session_id))``.
        """
        return await self.trigger.maybe_summarize(session_id)

    async def rescore_session(self, session_id: str) -> int:
        """Recompute importance for every message in a session.

        Persists changed scores and auto-pins user messages at or above
        ``auto_pin_threshold`` (once per message). Returns how many scores
        changed.
        """
        try:
            messages = await self.store.all_messages(session_id)
            changed = 0
            for message in messages:
                score = self.scorer.score_message(message)
                if score != message.importance_score:
                    await self.store.update_importance(session_id, message.id, score)
                    changed += 1
                await self._auto_pin(message, score)
        except ChatMemoryError:
            logger.warning("Rescoring session %s stopped early", session_id, exc_info=True)
            return 0
        logger.info("Rescored %d of %d messages in session %s", changed, len(messages), session_id)
        return changed
