"""Conversation summarizer with a deterministic extractive fallback.

``summarize()`` never raises. It asks a completion backend for a short,
strictly extractive summary and, when the call fails, times out, or the
result fails validation, returns a summary built from counts and literal
excerpts instead. A rejected summary is not retried: a model that fabricated
once is not assumed to self-correct.

Model selection prefers the session's own model when it is a local model and
the local endpoint is reachable, so sessions bound to a local model keep
getting summaries offline. Everything else goes to the cloud default.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chatmem.config import settings
from chatmem.errors import StoreUnavailable, SummarizationFailed
from chatmem.llm.client import NETWORK_ERRORS
from chatmem.memory.validator import SummaryValidator

if TYPE_CHECKING:
    from chatmem.llm.client import CompletionBackend, OllamaBackend
    from chatmem.llm.models import ModelRegistry
    from chatmem.memory.models import Message
    from chatmem.memory.store import MessageStore

logger = logging.getLogger(__name__)

EMPTY_SUMMARY = "No messages to summarize"

LOCAL_SYSTEM_PROMPT = """TASK: Write a brief summary of the conversation below. Summarize ONLY what was discussed. Do not create new content.

FORMAT: 1-2 plain sentences, at most {max_words} words, describing the key topics and outcomes.
EXAMPLE: "User described feeling overwhelmed at work, asked about sleep routines, and agreed to try a wind-down schedule."

DO NOT: add greetings, headings, lists, advice, or anything that was not said."""

CLOUD_SYSTEM_PROMPT = """You are a conversation summarizer. Summarize only what was discussed; do not create new content, advice or elaboration.

Preserve:
1. Key topics and questions raised
2. Decisions, plans and commitments
3. Facts about people, health, or circumstances the user shared
4. The user's current state or open concerns

Write plain prose, no headings, at most {max_words} words."""

# (topic label, trigger keywords) checked against user messages in order.
DEFAULT_TOPICS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("crisis support", ("crisis", "emergency", "urgent")),
    ("depression", ("depression", "sad", "hopeless")),
    ("anxiety", ("anxiety", "anxious", "worried", "panic")),
    ("stress management", ("stress", "overwhelmed", "pressure")),
    ("mood discussion", ("mood", "feeling", "emotion")),
    ("therapy", ("therapy", "counseling", "therapist")),
    ("medication management", ("medication", "prescription", "dosage", "side effect")),
    ("treatment planning", ("treatment", "plan", "goal")),
    ("family caregiving", ("family", "caregiver", "caring for", "mother", "father")),
    ("healthcare appointments", ("appointment", "doctor", "visit")),
    ("coping strategies", ("coping", "strategy", "technique")),
    ("sleep issues", ("sleep", "insomnia", "tired")),
    ("technical discussion", ("code", "programming", "function")),
    ("troubleshooting", ("bug", "error", "fix")),
    ("seeking help", ("help", "how to", "explain")),
)
MAX_TOPICS = 4


@dataclass(frozen=True)
class SummaryResult:
    text: str
    model_id: str | None = None
    local: bool = False
    fallback: bool = False
    reason: str = ""


def _excerpt(text: str, length: int) -> str:
    return text[:length].strip() or "N/A"


class ConversationSummarizer:
    def __init__(
        self,
        cloud_backend: CompletionBackend,
        *,
        local_backend: OllamaBackend | None = None,
        registry: ModelRegistry | None = None,
        store: MessageStore | None = None,
        validator: SummaryValidator | None = None,
        cloud_model: str | None = None,
        timeout_seconds: float | None = None,
        temperature: float | None = None,
        topics: tuple[tuple[str, tuple[str, ...]], ...] = DEFAULT_TOPICS,
    ) -> None:
        self._cloud = cloud_backend
        self._local = local_backend
        self._registry = registry
        self._store = store
        self._validator = validator or SummaryValidator()
        name = cloud_model or settings.summary_cloud_model
        self.cloud_model = (registry.resolve(name) if registry else None) or name
        self.timeout_seconds = (
            settings.summary_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.temperature = settings.summary_temperature if temperature is None else temperature
        self.topics = topics

    # -- Model selection -------------------------------------------------------

    async def select_model(self, session_id: str | None) -> tuple[str, bool]:
        """Return ``(model_id, is_local)`` for summarizing *session_id*."""
        if session_id and self._store and self._registry and self._local:
            try:
                session_model = await self._store.session_model(session_id)
            except StoreUnavailable:
                logger.warning("Could not read model for session %s", session_id, exc_info=True)
                session_model = None
            if session_model and self._registry.is_local(session_model):
                if await self._local.is_available():
                    return session_model, True
                logger.info(
                    "Local model %s unreachable, summarizing %s with %s",
                    session_model,
                    session_id,
                    self.cloud_model,
                )
        return self.cloud_model, False

    # -- Public API ------------------------------------------------------------

    async def summarize(self, messages: Sequence[Message], session_id: str | None = None) -> str:
        result = await self.summarize_detailed(messages, session_id)
        return result.text

    async def summarize_detailed(
        self, messages: Sequence[Message], session_id: str | None = None
    ) -> SummaryResult:
        if not messages:
            return SummaryResult(EMPTY_SUMMARY, fallback=True, reason="no messages")

        model_id: str | None = None
        local = False
        try:
            model_id, local = await self.select_model(session_id)
            text = await self._generate(messages, model_id, local)
            return SummaryResult(text, model_id=model_id, local=local)
        except SummarizationFailed as exc:
            logger.warning(
                "Summarization with %s failed (%s); using fallback", model_id, exc.reason
            )
            fallback = (
                self.create_offline_summary(messages)
                if exc.network
                else self.create_fallback_summary(messages)
            )
            return SummaryResult(
                fallback, model_id=model_id, local=local, fallback=True, reason=exc.reason
            )
        except Exception as exc:
            logger.exception("Unexpected summarization error")
            return SummaryResult(
                self.create_fallback_summary(messages),
                model_id=model_id,
                local=local,
                fallback=True,
                reason=repr(exc),
            )

    async def _generate(self, messages: Sequence[Message], model_id: str, local: bool) -> str:
        max_tokens = (
            settings.summary_local_max_tokens if local else settings.summary_cloud_max_tokens
        )
        # Roughly 0.75 words per token.
        max_words = max(20, int(max_tokens * 0.75))
        template = LOCAL_SYSTEM_PROMPT if local else CLOUD_SYSTEM_PROMPT
        conversation = "\n".join(f"{m.role}: {m.text}" for m in messages)
        prompt = (
            f"Conversation to summarize:\n{conversation}\n\nProvide only the summary:"
            if local
            else f"Please summarize this conversation:\n\n{conversation}"
        )
        backend = self._local if local else self._cloud

        try:
            raw = await asyncio.wait_for(
                backend.complete(
                    template.format(max_words=max_words),
                    [{"role": "user", "content": prompt}],
                    model=model_id,
                    temperature=self.temperature,
                    max_tokens=max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as exc:
            raise SummarizationFailed(
                f"timed out after {self.timeout_seconds}s", network=True
            ) from exc
        except NETWORK_ERRORS as exc:
            raise SummarizationFailed(f"network error: {exc}", network=True) from exc
        except Exception as exc:
            raise SummarizationFailed(f"completion error: {exc!r}") from exc

        summary = (raw or "").strip()
        if local or settings.validate_cloud_summaries:
            result = self._validator.check(summary, messages)
            if not result.valid:
                raise SummarizationFailed(f"rejected by validator: {result.reason}")
        elif not summary:
            raise SummarizationFailed("empty completion")
        return summary

    # -- Deterministic fallbacks -----------------------------------------------

    def extract_topics(self, messages: Sequence[Message]) -> list[str]:
        """Keyword topics from user messages, in first-seen order, capped."""
        found: list[str] = []
        for message in messages:
            if message.role != "user":
                continue
            text = message.text.lower()
            for label, keywords in self.topics:
                if label not in found and any(k in text for k in keywords):
                    found.append(label)
        return found[:MAX_TOPICS]

    def create_fallback_summary(self, messages: Sequence[Message]) -> str:
        if not messages:
            return EMPTY_SUMMARY
        count = len(messages)
        topics = self.extract_topics(messages)
        users = sum(1 for m in messages if m.role == "user")
        assistants = sum(1 for m in messages if m.role == "assistant")
        if topics:
            return (
                f"Conversation with {count} messages ({users} user, {assistants} assistant) "
                f"about: {', '.join(topics)}."
            )
        user_messages = [m for m in messages if m.role == "user"]
        first = _excerpt(user_messages[0].text, 30) if user_messages else "N/A"
        last = _excerpt(user_messages[-1].text, 30) if user_messages else "N/A"
        return f'Conversation with {count} messages. Started with: "{first}..." Recent topic: "{last}..."'

    def create_offline_summary(self, messages: Sequence[Message]) -> str:
        if not messages:
            return EMPTY_SUMMARY
        first = _excerpt(messages[0].text, 50)
        last = _excerpt(messages[-1].text, 50)
        return f'Offline summary: {len(messages)} messages. Started: "{first}..." Recent: "{last}..."'
