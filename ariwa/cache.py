# Ariwa - Response Cache
"""
In-memory TTL cache shared in shape by both API wrappers.

Entries expire lazily: an expired entry is dropped the next time it is read.
There is no background sweep and no capacity bound.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

MISSING = object()  # sentinel for TTLCache.get


@dataclass
class CacheEntry:
    """A cached value with its expiry instant (clock seconds)."""

    value: Any
    expiry: float


def cache_key(path: str, query: Optional[Mapping[str, Any]] = None) -> str:
    """Derive the cache key for a request.

    Query parameters are sorted by name and joined as ``k=v`` pairs so that the
    same logical request always maps to the same key. Parameters whose value is
    ``None`` are not part of the request and are left out.

    Args:
        path: Request path relative to the API base URL
        query: Optional query parameters

    Returns:
        ``path`` or ``path?k1=v1&k2=v2``
    """
    if not query:
        return path
    params = sorted((k, v) for k, v in query.items() if v is not None)
    if not params:
        return path
    return path + "?" + "&".join(f"{k}={_format_value(v)}" for k, v in params)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


class TTLCache:
    """Key/value store with per-entry expiry.

    Args:
        clock: Monotonic clock in seconds, injectable for tests
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for ``key`` if it has not expired, else ``default``.

        Cached values may themselves be None (a JSON ``null`` body); pass
        ``MISSING`` as the default to tell a cached None from a miss.
        """
        entry = self._entries.get(key)
        if entry is None:
            return default
        if self._clock() >= entry.expiry:
            del self._entries[key]
            return default
        return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds, overwriting."""
        self._entries[key] = CacheEntry(value=value, expiry=self._clock() + ttl)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key, MISSING) is not MISSING

    def __len__(self) -> int:
        return len(self._entries)
