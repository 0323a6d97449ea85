"""Tests for the summary validator."""

import pytest
from helpers import make_message

from chatmem.memory.validator import SummaryValidator, ValidationRules

SOURCE = [
    make_message(1, "I have been feeling anxious about my job interview next week."),
    make_message(2, "That sounds stressful. What part of the interview worries you most?", "assistant"),
    make_message(3, "Mostly the technical questions, I freeze when I get nervous."),
    make_message(4, "Practicing out loud with a friend could help you feel prepared.", "assistant"),
]


@pytest.fixture
def validator() -> SummaryValidator:
    return SummaryValidator(ValidationRules())


def test_faithful_summary_passes(validator: SummaryValidator) -> None:
    summary = "User feeling anxious about a job interview; technical questions cause freezing."
    result = validator.check(summary, SOURCE)
    assert result.valid, result.reason
    assert not validator.is_invalid(summary, SOURCE)


@pytest.mark.parametrize(
    "summary",
    [
        "Here's a summary of the interview talk.",
        "Certainly! The user is anxious about the interview.",
        "Let me summarize: interview anxiety.",
    ],
)
def test_preamble_rejected(validator: SummaryValidator, summary: str) -> None:
    result = validator.check(summary, SOURCE)
    assert not result.valid
    assert "preamble" in result.reason


@pytest.mark.parametrize(
    "summary",
    [
        "Interview anxiety.\n```python\nprint('x')\n```",
        "Chapter One: the interview",
        "Act II begins with the interview",
    ],
)
def test_generated_structure_rejected(validator: SummaryValidator, summary: str) -> None:
    result = validator.check(summary, SOURCE)
    assert not result.valid
    assert "structure" in result.reason


def test_heading_word_on_later_line_allowed(validator: SummaryValidator) -> None:
    source = [
        make_message(1, "We had rehearsal today and I keep forgetting my lines in the park scene."),
        make_message(2, "Which part of the scene at the park trips you up?", "assistant"),
        make_message(3, "The monologue. The director says the rehearsal schedule is tight."),
    ]
    summary = "User discussed rehearsal.\nScene at the park was discussed."
    result = validator.check(summary, source)
    assert result.valid, result.reason


def test_code_fence_on_later_line_still_rejected(validator: SummaryValidator) -> None:
    result = validator.check("Interview anxiety.\n```\nx\n```", SOURCE)
    assert not result.valid


def test_absolute_length_ceiling() -> None:
    long_source = [make_message(1, "interview " * 200)]
    validator = SummaryValidator(ValidationRules(max_chars=50))
    result = validator.check("interview " * 10, long_source)
    assert not result.valid
    assert "too long" in result.reason


def test_ratio_ceiling(validator: SummaryValidator) -> None:
    source_len = len(" ".join(m.text for m in SOURCE))
    summary = ("interview anxious " * 40)[: int(source_len * 0.6)]
    result = validator.check(summary, SOURCE)
    assert not result.valid
    assert "ratio" in result.reason


def test_low_overlap_rejected(validator: SummaryValidator) -> None:
    summary = "Zebras galloped across moonlit savannas."
    result = validator.check(summary, SOURCE)
    assert not result.valid
    assert "overlap" in result.reason


def test_fabricated_summary_at_eighty_percent_of_source_rejected() -> None:
    source = [make_message(1, "we talked about the garden and planting tomatoes " * 5)]
    source_len = len(source[0].text)
    filler = "zyx qwv "
    summary = (filler * source_len)[: int(source_len * 0.8)]
    validator = SummaryValidator(ValidationRules(max_chars=10_000))
    assert validator.word_overlap(summary, source[0].text.lower()) < 0.05
    assert validator.is_invalid(summary, source)


def test_empty_summary_rejected(validator: SummaryValidator) -> None:
    assert validator.is_invalid("   ", SOURCE)


def test_relaxed_structure_rules_allow_headings() -> None:
    rules = ValidationRules(structure_patterns=())
    validator = SummaryValidator(rules)
    summary = "Chapter of the interview worries: technical questions and feeling nervous."
    assert validator.check(summary, SOURCE).valid


def test_word_overlap_counts_only_long_words_as_matches(validator: SummaryValidator) -> None:
    # "the" is in the source but too short to count; "interview" counts.
    assert validator.word_overlap("the interview", "the interview") == pytest.approx(0.5)
    assert validator.word_overlap("", "anything") == 0.0
