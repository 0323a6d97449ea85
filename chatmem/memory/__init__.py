"""Memory subsystem: stores, read cache, scoring, summarization and context assembly."""

from chatmem.memory.cache import CacheKey, ReadCache
from chatmem.memory.context import ContextAssembler, estimate_tokens
from chatmem.memory.manager import MemoryManager
from chatmem.memory.models import (
    ConversationSummary,
    MemoryContext,
    MemoryStats,
    Message,
    SemanticPin,
)
from chatmem.memory.pins import PinStore
from chatmem.memory.scoring import ImportanceScorer, ScoringRules, VocabularyTier
from chatmem.memory.store import MessageStore
from chatmem.memory.summarizer import ConversationSummarizer, SummaryResult
from chatmem.memory.trigger import AutoSummarizer, Phase, SummaryState
from chatmem.memory.validator import SummaryValidator, ValidationResult, ValidationRules

__all__ = [
    "AutoSummarizer",
    "CacheKey",
    "ContextAssembler",
    "ConversationSummarizer",
    "ConversationSummary",
    "ImportanceScorer",
    "MemoryContext",
    "MemoryManager",
    "MemoryStats",
    "Message",
    "MessageStore",
    "Phase",
    "PinStore",
    "ReadCache",
    "ScoringRules",
    "SemanticPin",
    "SummaryResult",
    "SummaryState",
    "SummaryValidator",
    "ValidationResult",
    "ValidationRules",
    "VocabularyTier",
    "estimate_tokens",
]
