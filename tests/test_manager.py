"""Tests for MemoryManager wiring and maintenance."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from helpers import add_turns

from chatmem.errors import StoreUnavailable
from chatmem.memory.manager import MemoryManager


@pytest.fixture
def cloud() -> MagicMock:
    backend = MagicMock()
    backend.complete = AsyncMock(return_value="User asked about tea.")
    return backend


@pytest.fixture
def local() -> MagicMock:
    backend = MagicMock()
    backend.is_available = AsyncMock(return_value=False)
    backend.complete = AsyncMock(return_value="")
    return backend


@pytest.fixture
def manager(db_path: Path, cloud: MagicMock, local: MagicMock) -> MemoryManager:
    return MemoryManager.from_settings(db_path, cloud_backend=cloud, local_backend=local)


async def test_record_then_build_context(manager: MemoryManager) -> None:
    await manager.record_message("s1", "user", "hello")
    await manager.record_message("s1", "assistant", "hi there")
    first = await manager.build_context("s1", 1000)
    assert [m.text for m in first.recent_messages] == ["hello"]

    await manager.record_message("s1", "user", "how are you?")
    second = await manager.build_context("s1", 1000)
    assert [m.text for m in second.recent_messages] == ["hello", "hi there"]


async def test_create_pin_shows_in_context(manager: MemoryManager) -> None:
    await manager.record_message("s1", "user", "hello")
    await manager.build_context("s1", 1000)
    pin = await manager.create_pin("s1", "Vegetarian")
    ctx = await manager.build_context("s1", 1000)
    assert ctx.semantic_pins == [pin]


async def test_create_summary_for_range(manager: MemoryManager, cloud: MagicMock) -> None:
    added = [await manager.record_message("s1", "user", f"tea question {i}") for i in range(5)]

    summary = await manager.create_summary("s1", added[0].id, added[2].id)

    assert summary.summary == "User asked about tea."
    assert summary.message_count == 3
    assert (summary.start_message_id, summary.end_message_id) == (added[0].id, added[2].id)
    prompt = cloud.complete.call_args.args[1][0]["content"]
    assert "tea question 2" in prompt
    assert "tea question 3" not in prompt
    ctx = await manager.build_context("s1", 1000)
    assert ctx.summaries == [summary]


async def test_create_summary_empty_range(manager: MemoryManager, cloud: MagicMock) -> None:
    assert await manager.create_summary("s1", 100, 200) is None
    cloud.complete.assert_not_awaited()


async def test_after_turn_compacts_history(manager: MemoryManager) -> None:
    manager.trigger.threshold = 8
    await add_turns(manager.store, "s1", 9)
    assert await manager.needs_summarization("s1")

    summary = await manager.after_turn("s1")

    assert summary is not None
    assert summary.message_count == 8
    assert not await manager.needs_summarization("s1")


async def test_after_turn_never_raises(manager: MemoryManager) -> None:
    manager.store.last_summary = AsyncMock(side_effect=StoreUnavailable("down"))
    assert await manager.after_turn("s1") is None


async def test_after_turn_survives_summarizer_failure(
    manager: MemoryManager, cloud: MagicMock
) -> None:
    manager.trigger.threshold = 4
    await add_turns(manager.store, "s1", 4)
    cloud.complete.side_effect = RuntimeError("provider down")

    summary = await manager.after_turn("s1")

    # The summarizer degrades to its extractive fallback rather than failing.
    assert summary is not None
    assert summary.summary.startswith("Conversation with 4 messages")


async def test_local_session_model_used_when_reachable(
    manager: MemoryManager, cloud: MagicMock, local: MagicMock
) -> None:
    local_model = next(m for m in manager.summarizer._registry.list_models() if m.is_local)
    local.is_available.return_value = True
    local.complete.return_value = "Question about green tea brewing."
    await manager.bind_session_model("s1", local_model.id)
    added = [
        await manager.record_message("s1", "user", f"Question {i} about green tea brewing times")
        for i in range(3)
    ]

    summary = await manager.create_summary("s1", added[0].id, added[-1].id)

    assert summary.summary == "Question about green tea brewing."
    cloud.complete.assert_not_awaited()


async def test_record_message_scores_on_append(manager: MemoryManager) -> None:
    question = await manager.record_message("s1", "user", "how do I start?")
    reply = await manager.record_message("s1", "assistant", "sure")

    assert question.importance_score == 0.7
    assert reply.importance_score == 0.55
    stored = await manager.store.all_messages("s1")
    assert [m.importance_score for m in stored] == [0.7, 0.55]
    assert await manager.pins.count("s1") == 0


async def test_record_message_auto_pins_important_user_message(manager: MemoryManager) -> None:
    urgent = await manager.record_message("s1", "user", "This is an emergency, why is it happening?")
    await manager.record_message("s1", "assistant", "This is an emergency, why is it happening?")

    pins = await manager.pins.top_pins("s1", 5)
    assert [(p.source_message_id, p.pin_type) for p in pins] == [(urgent.id, "auto")]
    assert pins[0].importance_score == 1.0


async def test_record_message_survives_pin_failure(manager: MemoryManager) -> None:
    manager.pins.create = AsyncMock(side_effect=StoreUnavailable("down"))
    message = await manager.record_message("s1", "user", "emergency, why?")
    assert message.importance_score == 1.0
    assert await manager.store.count_messages("s1") == 1


async def test_rescore_session_updates_and_auto_pins(manager: MemoryManager) -> None:
    # Written straight to the store, so every score starts neutral.
    urgent = await manager.store.append_message(
        "s1", "user", "This is an emergency, why is it happening?"
    )
    await manager.store.append_message("s1", "user", "ok")
    await manager.store.append_message("s1", "assistant", "sure")

    changed = await manager.rescore_session("s1")

    assert changed == 2
    pins = await manager.pins.top_pins("s1", 5)
    assert len(pins) == 1
    assert pins[0].pin_type == "auto"
    assert pins[0].source_message_id == urgent.id
    assert pins[0].importance_score == 1.0

    # A second pass changes nothing and does not pin twice.
    assert await manager.rescore_session("s1") == 0
    assert await manager.pins.count("s1") == 1


async def test_rescore_session_store_failure(manager: MemoryManager) -> None:
    manager.store.all_messages = AsyncMock(side_effect=StoreUnavailable("down"))
    assert await manager.rescore_session("s1") == 0


async def test_stats(manager: MemoryManager) -> None:
    await manager.record_message("s1", "user", "hello")
    await manager.record_message("s1", "assistant", "hi")
    await manager.create_pin("s1", "fact")

    stats = await manager.stats("s1")

    assert stats.total_messages == 2
    assert stats.total_pins == 1
    assert stats.total_summaries == 0
    assert stats.average_importance == pytest.approx(0.525)
    assert stats.oldest_message <= stats.newest_message
