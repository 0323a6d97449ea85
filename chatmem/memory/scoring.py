"""Message importance scoring.

Scores start at a neutral baseline and collect additive increments, clamped
to ``[0, 1]``. The vocabulary tiers are deployment knowledge and live in
:class:`ScoringRules`; the baseline-plus-increments mechanism is fixed so the
ordering the context assembler relies on stays stable across calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from chatmem.memory.models import NEUTRAL_IMPORTANCE, Message


@dataclass(frozen=True)
class VocabularyTier:
    """Keywords that each add the same weight. A tier counts at most once."""

    name: str
    keywords: tuple[str, ...]
    weight: float

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


DEFAULT_TIERS: tuple[VocabularyTier, ...] = (
    VocabularyTier(
        "crisis",
        (
            "crisis",
            "emergency",
            "urgent",
            "help me",
            "can't cope",
            "suicidal",
            "self-harm",
        ),
        0.3,
    ),
    VocabularyTier(
        "emotional",
        (
            "feeling",
            "mood",
            "depression",
            "anxiety",
            "stress",
            "worried",
            "overwhelmed",
            "therapy",
            "counseling",
        ),
        0.25,
    ),
    VocabularyTier(
        "treatment",
        (
            "medication",
            "prescription",
            "dosage",
            "side effect",
            "treatment",
            "doctor",
            "appointment",
        ),
        0.2,
    ),
    VocabularyTier(
        "relationship",
        ("mom", "mother", "dad", "father", "caregiver", "family", "partner", "child"),
        0.15,
    ),
    VocabularyTier("problem", ("error", "problem", "issue"), 0.1),
)


@dataclass(frozen=True)
class ScoringRules:
    baseline: float = NEUTRAL_IMPORTANCE
    question_weight: float = 0.2
    question_openers: tuple[str, ...] = ("what", "how", "why")
    markup_weight: float = 0.1
    markup_markers: tuple[str, ...] = ("```", "function", "class")
    long_message_chars: int = 200
    long_message_weight: float = 0.1
    assistant_weight: float = 0.05
    tiers: tuple[VocabularyTier, ...] = field(default=DEFAULT_TIERS)


class ImportanceScorer:
    """Pure, deterministic ``(text, role) -> score`` function."""

    def __init__(self, rules: ScoringRules | None = None) -> None:
        self.rules = rules or ScoringRules()

    def score(self, text: str, role: str = "user") -> float:
        rules = self.rules
        lowered = text.lower()
        score = rules.baseline

        if "?" in lowered or lowered.startswith(rules.question_openers):
            score += rules.question_weight

        for tier in rules.tiers:
            if tier.matches(lowered):
                score += tier.weight

        if any(marker in lowered for marker in rules.markup_markers):
            score += rules.markup_weight

        if len(lowered) > rules.long_message_chars:
            score += rules.long_message_weight

        if role == "assistant":
            score += rules.assistant_weight

        return round(min(max(score, 0.0), 1.0), 4)

    def score_message(self, message: Message) -> float:
        return self.score(message.text, message.role)
