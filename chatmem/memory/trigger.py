"""Auto-summarization trigger.

A two-state machine per session::

    IDLE --(pending >= threshold)--> SUMMARIZING --(success | failure)--> IDLE

"Pending" counts messages with an id greater than the last summary's
``end_message_id`` (or every message when the session has never been
summarized). Success resets the counter to whatever was not covered;
failure leaves it unchanged so the next turn retries.

States are rebuilt from the store on every check, so only the
``max_sessions`` most recently used idle sessions are kept in memory.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from chatmem.config import settings
from chatmem.errors import StoreUnavailable
from chatmem.memory.models import ConversationSummary

if TYPE_CHECKING:
    from chatmem.memory.models import Message
    from chatmem.memory.store import MessageStore
    from chatmem.memory.summarizer import ConversationSummarizer

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    SUMMARIZING = "summarizing"


@dataclass
class SummaryState:
    """Per-session trigger bookkeeping."""

    last_summary_at: str | None = None
    last_summary_end_id: int | None = None
    message_count_since_last_summary: int = 0
    phase: Phase = Phase.IDLE


class AutoSummarizer:
    def __init__(
        self,
        store: MessageStore,
        summarizer: ConversationSummarizer,
        *,
        threshold: int | None = None,
        summarize_all_pending: bool | None = None,
        max_sessions: int = 1024,
    ) -> None:
        self._store = store
        self._summarizer = summarizer
        self.threshold = settings.summary_threshold if threshold is None else threshold
        self.summarize_all_pending = (
            settings.summarize_all_pending
            if summarize_all_pending is None
            else summarize_all_pending
        )
        self.max_sessions = max_sessions
        self._states: OrderedDict[str, SummaryState] = OrderedDict()

    def state(self, session_id: str) -> SummaryState:
        state = self._states.get(session_id)
        if state is not None:
            self._states.move_to_end(session_id)
            return state
        state = self._states[session_id] = SummaryState()
        while len(self._states) > self.max_sessions:
            idle = next(
                (
                    sid
                    for sid, s in self._states.items()
                    if s.phase is Phase.IDLE and sid != session_id
                ),
                None,
            )
            if idle is None:
                break
            del self._states[idle]
        return state

    async def refresh_state(self, session_id: str) -> SummaryState:
        """Reload the counters for *session_id* from the store."""
        state = self.state(session_id)
        last = await self._store.last_summary(session_id)
        state.last_summary_at = last.created_at if last else None
        state.last_summary_end_id = last.end_message_id if last else None
        state.message_count_since_last_summary = await self._store.message_count_after(
            session_id, state.last_summary_end_id
        )
        return state

    async def needs_summarization(self, session_id: str) -> bool:
        state = await self.refresh_state(session_id)
        return state.message_count_since_last_summary >= self.threshold

    async def maybe_summarize(self, session_id: str) -> ConversationSummary | None:
        """Summarize the next pending range if the threshold is reached.

        Returns the stored summary, or None when nothing fired or the attempt
        failed. Never raises.
        """
        state = self.state(session_id)
        if state.phase is Phase.SUMMARIZING:
            logger.debug("Session %s already summarizing; skipping", session_id)
            return None

        # Claimed before the first await so a concurrent call sees it.
        state.phase = Phase.SUMMARIZING
        try:
            await self.refresh_state(session_id)
            if state.message_count_since_last_summary < self.threshold:
                return None
            limit = None if self.summarize_all_pending else self.threshold
            batch = await self._store.messages_after(
                session_id, state.last_summary_end_id, limit=limit
            )
            summary = await self.summarize_range(session_id, batch)
        except StoreUnavailable:
            logger.warning("Store unavailable summarizing %s; will retry next turn", session_id)
            return None
        except Exception:
            logger.exception("Auto-summarization for %s failed; will retry next turn", session_id)
            return None
        finally:
            state.phase = Phase.IDLE

        state.last_summary_at = summary.created_at
        state.last_summary_end_id = summary.end_message_id
        state.message_count_since_last_summary -= summary.message_count
        logger.info(
            "Summarized %d messages for session %s (%d pending)",
            summary.message_count,
            session_id,
            state.message_count_since_last_summary,
        )
        return summary

    async def summarize_range(
        self, session_id: str, messages: list[Message]
    ) -> ConversationSummary:
        """Summarize *messages* and persist the result."""
        text = await self._summarizer.summarize(messages, session_id)
        summary = ConversationSummary(
            session_id=session_id,
            summary=text,
            message_count=len(messages),
            start_message_id=messages[0].id,
            end_message_id=messages[-1].id,
        )
        return await self._store.add_summary(summary)
