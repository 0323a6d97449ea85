"""Shared test fixtures."""

from pathlib import Path

import pytest

from chatmem.memory.cache import ReadCache
from chatmem.memory.pins import PinStore
from chatmem.memory.store import MessageStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ReadCache:
    return ReadCache(ttl_seconds=30, clock=clock)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "memory.db"


@pytest.fixture
def store(db_path: Path, cache: ReadCache) -> MessageStore:
    """A MessageStore backed by a temp database, wired to the shared cache."""
    return MessageStore(db_path=db_path, cache=cache)


@pytest.fixture
def pins(db_path: Path, cache: ReadCache) -> PinStore:
    return PinStore(db_path=db_path, cache=cache)

