"""Expiring value cache with get-or-refresh semantics.

Instances are created by the caller and passed to whatever needs them, e.g.
``GitHubSourceTree`` keeps installation tokens in one.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

from repo_memory.utils.time import now_ms

V = TypeVar("V")


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    value: V
    expires_at: int


class TTLCache(Generic[V]):
    """Map of identifier -> ``{value, expires_at}`` refreshed on demand.

    An entry is treated as stale ``refresh_buffer_ms`` before it expires so
    callers never receive a value that lapses mid-request.
    """

    def __init__(self, refresh_buffer_ms: int = 5 * 60 * 1000, clock: Callable[[], int] = now_ms) -> None:
        self.refresh_buffer_ms = refresh_buffer_ms
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not self._is_live(entry):
                return None
            return entry.value

    def put(self, key: Hashable, value: V, expires_at: int) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    def get_or_refresh(self, key: Hashable, refresh: Callable[[], tuple[V, int]]) -> V:
        """Return the cached value, calling ``refresh`` for a new ``(value, expires_at)`` when stale."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value, expires_at = refresh()
        self.put(key, value, expires_at)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_live(self, entry: CacheEntry[V]) -> bool:
        return entry.expires_at > self._clock() + self.refresh_buffer_ms


__all__ = ["TTLCache", "CacheEntry"]
