"""Context assembly: recent messages + semantic pins + summaries under a budget.

Size is estimated with a cheap character proxy (``ceil(chars * ratio)`` per
item, summed), not a tokenizer; this runs on every turn. When everything fits
it is returned untouched. Otherwise truncation keeps, in order:

1. the most recent ``min(3, available)`` messages, even if they alone exceed
   the budget;
2. pins in descending importance while they fit;
3. summaries, newest first, while they fit.

Anything that does not fit is dropped without error.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, TypeVar

from chatmem.config import settings
from chatmem.errors import StoreUnavailable
from chatmem.memory.cache import CacheKey
from chatmem.memory.models import ConversationSummary, MemoryContext, Message, SemanticPin

if TYPE_CHECKING:
    from chatmem.memory.cache import ReadCache
    from chatmem.memory.pins import PinStore
    from chatmem.memory.store import MessageStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def estimate_tokens(text: str, ratio: float = 0.75) -> int:
    """Approximate token count for *text*."""
    if not text:
        return 0
    return math.ceil(len(text) * ratio)


class ContextAssembler:
    def __init__(
        self,
        store: MessageStore,
        pins: PinStore,
        cache: ReadCache | None = None,
        *,
        recent_limit: int | None = None,
        pin_limit: int | None = None,
        summary_limit: int | None = None,
        min_recent: int | None = None,
        default_budget: int | None = None,
        tokens_per_char: float | None = None,
    ) -> None:
        self._store = store
        self._pins = pins
        self._cache = cache
        self.recent_limit = settings.recent_message_limit if recent_limit is None else recent_limit
        self.pin_limit = settings.pin_fetch_limit if pin_limit is None else pin_limit
        self.summary_limit = (
            settings.summary_fetch_limit if summary_limit is None else summary_limit
        )
        self.min_recent = settings.min_recent_messages if min_recent is None else min_recent
        self.default_budget = (
            settings.default_token_budget if default_budget is None else default_budget
        )
        self.tokens_per_char = (
            settings.tokens_per_char if tokens_per_char is None else tokens_per_char
        )

    # -- Size estimation -------------------------------------------------------

    def _size(self, text: str) -> int:
        return estimate_tokens(text, self.tokens_per_char)

    def estimate(
        self,
        messages: Sequence[Message],
        pins: Sequence[SemanticPin],
        summaries: Sequence[ConversationSummary],
    ) -> int:
        return (
            sum(self._size(m.text) for m in messages)
            + sum(self._size(p.content) for p in pins)
            + sum(self._size(s.summary) for s in summaries)
        )

    # -- Reads -----------------------------------------------------------------

    async def _cached(
        self, session_id: str, shape: str, loader: Callable[[], Awaitable[list[T]]]
    ) -> list[T]:
        try:
            if self._cache is None:
                return await loader()
            return await self._cache.get_or_load(CacheKey(session_id, shape), loader)
        except StoreUnavailable:
            logger.warning(
                "Store unavailable reading %s for session %s; continuing without it",
                shape,
                session_id,
                exc_info=True,
            )
            return []

    async def build_context(self, session_id: str, token_budget: int | None = None) -> MemoryContext:
        """Assemble a size-bounded memory context for the next turn."""
        budget = self.default_budget if token_budget is None else token_budget

        messages = await self._cached(
            session_id,
            f"recent:{self.recent_limit}",
            lambda: self._store.recent_messages(session_id, self.recent_limit),
        )
        pins = await self._cached(
            session_id,
            f"pins:{self.pin_limit}",
            lambda: self._pins.top_pins(session_id, self.pin_limit),
        )
        summaries = await self._cached(
            session_id,
            f"summaries:{self.summary_limit}",
            lambda: self._store.recent_summaries(session_id, self.summary_limit),
        )

        total = self.estimate(messages, pins, summaries)
        if total <= budget:
            return MemoryContext(
                recent_messages=messages,
                semantic_pins=pins,
                summaries=summaries,
                total_tokens=total,
                budget=budget,
            )
        return self.truncate(messages, pins, summaries, budget)

    # -- Truncation ------------------------------------------------------------

    def truncate(
        self,
        messages: Sequence[Message],
        pins: Sequence[SemanticPin],
        summaries: Sequence[ConversationSummary],
        budget: int,
    ) -> MemoryContext:
        keep = min(self.min_recent, len(messages))
        kept_messages = list(messages[len(messages) - keep :]) if keep else []
        used = sum(self._size(m.text) for m in kept_messages)

        kept_pins: list[SemanticPin] = []
        ranked = sorted(
            pins, key=lambda p: (p.importance_score, p.created_at), reverse=True
        )
        for pin in ranked:
            size = self._size(pin.content)
            if used + size <= budget:
                kept_pins.append(pin)
                used += size

        kept_summaries: list[ConversationSummary] = []
        for summary in summaries:
            size = self._size(summary.summary)
            if used + size <= budget:
                kept_summaries.append(summary)
                used += size

        if used > budget:
            logger.info(
                "Context for %d recent messages is over budget (%d > %d)",
                len(kept_messages),
                used,
                budget,
            )
        return MemoryContext(
            recent_messages=kept_messages,
            semantic_pins=kept_pins,
            summaries=kept_summaries,
            total_tokens=used,
            budget=budget,
            truncated=True,
        )
