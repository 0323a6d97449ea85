"""Short-TTL read cache over the memory stores.

Entries are keyed by ``(session_id, shape)`` where *shape* names the query,
e.g. ``"recent:8"``. Values are deep-copied on the way in and on the way out
so a caller mutating a returned list never changes what the next caller sees.

Every write path calls :meth:`ReadCache.invalidate` for its session before
returning. The TTL only bounds staleness when that discipline is broken.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from chatmem.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISS = object()


@dataclass(frozen=True)
class CacheKey:
    session_id: str
    shape: str


@dataclass
class _Entry:
    value: Any
    stored_at: float


class ReadCache:
    """In-process key/value map with lazy TTL eviction."""

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, _Entry] = {}
        # Per-session loads in flight, and a counter bumped by invalidations that
        # land while one is in flight so its result is not stored. Both are
        # dropped once the session has no load in flight.
        self._loading: dict[str, int] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    def get(self, key: CacheKey, default: Any = None) -> Any:
        """Return a copy of the cached value, or *default* on a miss."""
        value = self._lookup(key)
        if value is _MISS:
            return default
        return value

    def _lookup(self, key: CacheKey) -> Any:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return _MISS
            if self._expired(entry, now):
                del self._entries[key]
                self.misses += 1
                return _MISS
            self.hits += 1
            return copy.deepcopy(entry.value)

    def put(self, key: CacheKey, value: Any) -> None:
        stored = copy.deepcopy(value)
        with self._lock:
            self._entries[key] = _Entry(value=stored, stored_at=self._clock())

    async def get_or_load(self, key: CacheKey, loader: Callable[[], Awaitable[T]]) -> T:
        """Read-through helper: return the cached value or load and store it."""
        value = self._lookup(key)
        if value is not _MISS:
            return value
        session_id = key.session_id
        with self._lock:
            generation = self._generations.get(session_id, 0)
            self._loading[session_id] = self._loading.get(session_id, 0) + 1
        try:
            loaded = await loader()
            stored = copy.deepcopy(loaded)
            with self._lock:
                if self._generations.get(session_id, 0) == generation:
                    self._entries[key] = _Entry(value=stored, stored_at=self._clock())
            return loaded
        finally:
            with self._lock:
                remaining = self._loading[session_id] - 1
                if remaining:
                    self._loading[session_id] = remaining
                else:
                    del self._loading[session_id]
                    self._generations.pop(session_id, None)

    def invalidate(self, session_id: str) -> int:
        """Drop every entry scoped to *session_id*. Returns the count removed."""
        with self._lock:
            if session_id in self._loading:
                self._generations[session_id] = self._generations.get(session_id, 0) + 1
            stale = [k for k in self._entries if k.session_id == session_id]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("Invalidated %d cache entries for session %s", len(stale), session_id)
        return len(stale)

    def purge_expired(self) -> int:
        """Remove all expired entries. Returns the count removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if self._expired(e, now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
