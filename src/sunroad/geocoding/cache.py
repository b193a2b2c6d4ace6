"""Time-bounded in-memory cache for upstream autocomplete responses."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


def cache_key(provider: str, text: str) -> str:
    """Namespace normalized query text by provider: ``geoapify:new york``."""
    return f"{provider}:{text.strip().lower()}"


class QueryCache:
    """Process-lifetime TTL cache with lazy eviction.

    Expired entries stay in the store until a sweep, and a sweep only runs
    when a ``set`` pushes the size above ``max_entries``. Sweeps drop expired
    entries only; live entries are never evicted. If inserts outpace
    expiry the store grows past ``max_entries``.

    Construct one per service instance. Contents are disposable, so there is
    no teardown.
    """

    def __init__(self, max_entries: int = 1000, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        """True if an entry is physically present, fresh or not."""
        return key in self._entries

    def lookup(self, key: str) -> Optional[CacheEntry]:
        """Return the entry if present and not yet expired."""
        entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(self._clock()):
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        entry = self.lookup(key)
        return default if entry is None else entry.payload

    def set(self, key: str, payload: Any, ttl_seconds: float) -> CacheEntry:
        """Insert or replace ``key``; may trigger a sweep of expired entries."""
        with self._lock:
            now = self._clock()
            entry = CacheEntry(key=key, payload=payload, expires_at=now + ttl_seconds)
            self._entries[key] = entry
            if len(self._entries) > self.max_entries:
                self._sweep_locked(now)
            return entry

    def sweep(self) -> int:
        """Remove expired entries now; returns how many were dropped."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.expires_at < now]
        for key in expired:
            del self._entries[key]
        return len(expired)
