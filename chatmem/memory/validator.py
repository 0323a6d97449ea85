"""Heuristic checks that a generated summary is extractive, not invented.

Small local models asked to "summarize" a short conversation sometimes
continue or embellish it instead. These checks catch the common failure
shapes; the thresholds and patterns are tunable per deployment.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from chatmem.config import settings
from chatmem.memory.models import Message

logger = logging.getLogger(__name__)

DEFAULT_PREAMBLE_PATTERNS: tuple[str, ...] = (
    r"^(here's|here is|certainly|sure[,!]|of course|let me|i'll create|i can)",
)
DEFAULT_STRUCTURE_PATTERNS: tuple[str, ...] = (
    r"```",
    r"^(chapter|scene)\b",
    r"^act [ivx]+\b",
)


@dataclass(frozen=True)
class ValidationRules:
    max_chars: int = 500
    max_ratio: float = 0.5
    min_overlap: float = 0.05
    min_word_length: int = 4
    preamble_patterns: tuple[str, ...] = DEFAULT_PREAMBLE_PATTERNS
    structure_patterns: tuple[str, ...] = DEFAULT_STRUCTURE_PATTERNS

    @classmethod
    def from_settings(cls) -> ValidationRules:
        return cls(
            max_chars=settings.summary_max_chars,
            max_ratio=settings.summary_max_ratio,
            min_overlap=settings.summary_min_overlap,
        )


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str = ""


class SummaryValidator:
    def __init__(self, rules: ValidationRules | None = None) -> None:
        self.rules = rules or ValidationRules.from_settings()
        # Preambles are matched against the first line only; structure
        # anchors match the start of the whole summary, not of each line.
        self._preambles = [re.compile(p, re.IGNORECASE) for p in self.rules.preamble_patterns]
        self._structure = [re.compile(p, re.IGNORECASE) for p in self.rules.structure_patterns]

    def check(self, summary: str, source: Sequence[Message]) -> ValidationResult:
        """Return whether *summary* looks like a faithful summary of *source*."""
        text = summary.strip()
        if not text:
            return ValidationResult(False, "empty summary")

        for pattern in self._preambles:
            if pattern.search(text.splitlines()[0]):
                return ValidationResult(False, f"conversational preamble ({pattern.pattern})")

        for pattern in self._structure:
            if pattern.search(text):
                return ValidationResult(False, f"generated structure ({pattern.pattern})")

        if len(text) > self.rules.max_chars:
            return ValidationResult(False, f"too long ({len(text)} chars)")

        source_text = " ".join(m.text for m in source).lower()
        if source_text:
            ratio = len(text) / len(source_text)
            if ratio > self.rules.max_ratio:
                return ValidationResult(False, f"length ratio {ratio:.0%} of source")

        overlap = self.word_overlap(text, source_text)
        if overlap < self.rules.min_overlap:
            return ValidationResult(False, f"low word overlap ({overlap:.1%})")

        return ValidationResult(True)

    def is_invalid(self, summary: str, source: Sequence[Message]) -> bool:
        result = self.check(summary, source)
        if not result.valid:
            logger.warning("Rejected summary: %s: %r", result.reason, summary[:100])
        return not result.valid

    def word_overlap(self, summary: str, source_text: str) -> float:
        """Fraction of summary words that appear literally in the source.

        Only words of at least ``min_word_length`` characters can count as
        matches, but every word counts toward the denominator.
        """
        words = summary.lower().split()
        if not words:
            return 0.0
        matching = sum(
            1 for w in words if len(w) >= self.rules.min_word_length and w in source_text
        )
        return matching / len(words)
