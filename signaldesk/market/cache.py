"""In-memory TTL cache for per-symbol market data results.

Entries carry an absolute expiry instant; a read past expiry is a miss and
evicts the entry.  There is no other eviction policy.  Not thread-safe —
meant for a single asyncio event loop.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class CacheEntry:
    """A cached value plus its absolute expiry instant (clock seconds)."""

    value: Any
    expires_at: float


class TTLCache:
    """Expiring key → value store.

    Args:
        clock: Monotonic time source in seconds.  Injected so tests can
               advance time without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or ``None`` on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store *value* under *key* for *ttl* seconds."""
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() <= entry.expires_at

    def __len__(self) -> int:
        return len(self._entries)
