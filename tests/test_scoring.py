"""Tests for the importance scorer."""

import pytest
from helpers import make_message

from chatmem.memory.scoring import ImportanceScorer, ScoringRules, VocabularyTier


@pytest.fixture
def scorer() -> ImportanceScorer:
    return ImportanceScorer()


def test_neutral_baseline(scorer: ImportanceScorer) -> None:
    assert scorer.score("ok sounds good") == 0.5


def test_question_boost(scorer: ImportanceScorer) -> None:
    assert scorer.score("is it raining?") == 0.7
    assert scorer.score("how do I start") == 0.7


def test_tier_ordering(scorer: ImportanceScorer) -> None:
    crisis = scorer.score("this is an emergency")
    treatment = scorer.score("my new medication")
    relationship = scorer.score("my family visited")
    problem = scorer.score("there is a problem")
    assert crisis > treatment > relationship > problem > 0.5


def test_tier_counts_once(scorer: ImportanceScorer) -> None:
    assert scorer.score("error error problem issue") == 0.6


def test_markup_boost(scorer: ImportanceScorer) -> None:
    assert scorer.score("```print(1)```") == 0.6


def test_long_message_boost(scorer: ImportanceScorer) -> None:
    assert scorer.score("a" * 201) == 0.6
    assert scorer.score("a" * 200) == 0.5


def test_assistant_boost(scorer: ImportanceScorer) -> None:
    assert scorer.score("sounds good", role="assistant") == 0.55


def test_clamped_to_one(scorer: ImportanceScorer) -> None:
    text = "Urgent: why is my medication dosage causing anxiety for my family? error " * 5
    assert scorer.score(text, role="assistant") == 1.0


def test_case_insensitive(scorer: ImportanceScorer) -> None:
    assert scorer.score("CRISIS") == scorer.score("crisis")


def test_deterministic(scorer: ImportanceScorer) -> None:
    text = "What should I tell my doctor about the side effect?"
    assert scorer.score(text) == scorer.score(text)


def test_score_message(scorer: ImportanceScorer) -> None:
    msg = make_message(1, "sounds good", role="assistant")
    assert scorer.score_message(msg) == 0.55


def test_custom_rules() -> None:
    rules = ScoringRules(
        tiers=(VocabularyTier("billing", ("invoice", "refund"), 0.4),),
        assistant_weight=0.0,
    )
    scorer = ImportanceScorer(rules)
    assert scorer.score("where is my refund") == 0.9
    assert scorer.score("emergency") == 0.5


def test_negative_weights_clamp_to_zero() -> None:
    rules = ScoringRules(tiers=(VocabularyTier("noise", ("lol",), -0.9),))
    assert ImportanceScorer(rules).score("lol") == 0.0
