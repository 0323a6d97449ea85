"""Builders shared by the test modules."""

from chatmem.memory.models import Message
from chatmem.memory.store import MessageStore


def make_message(
    message_id: int,
    text: str,
    role: str = "user",
    session_id: str = "s1",
    importance: float = 0.5,
) -> Message:
    """Build an in-memory Message without touching the database."""
    return Message(
        id=message_id,
        session_id=session_id,
        role=role,
        text=text,
        created_at=f"2025-01-01T00:00:{message_id:02d}+00:00",
        importance_score=importance,
    )


async def add_turns(
    store: MessageStore, session_id: str, count: int, text: str = "msg"
) -> list[Message]:
    """Append *count* alternating user/assistant messages."""
    added = []
    for i in range(count):
        role = "user" if i % 2 == 0 else "assistant"
        added.append(await store.append_message(session_id, role, f"{text} {i + 1}"))
    return added
