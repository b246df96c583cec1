"""
In-memory TTL cache for listings and searches.

An instance is created by the application root and handed to the engines, so tests
and tenants can each use their own. Entries expire on access; a folder mutation
invalidates by substring so it does not need to know which exact keys exist.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable

DEFAULT_TTL = 5 * 60


def fingerprint(kind: str, owner: str, path: str, *parts: Hashable) -> str:
    """
    Build a cache key like "list:u1:/docs|1000||False".
    The "kind:owner:path|" part addresses exactly one path,
    "kind:owner:path/" all paths below it.
    """
    rest = "|".join("" if p is None else str(p) for p in parts)
    return f"{kind}:{owner}:{path}|{rest}"


class TTLCache:
    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries should be at least 1")
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()

    def get(self, key: str) -> Any | None:
        item = self._entries.get(key)
        if item is None:
            logging.debug(f"Cache MISS: {key}")
            return None
        expires, value = item
        if self._clock() >= expires:
            logging.debug(f"Cache EXPIRED: {key}")
            del self._entries[key]
            return None
        logging.debug(f"Cache HIT: {key}")
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + ttl, value)
        if len(self._entries) > self.max_entries:
            self._evict()

    def invalidate(self, pattern: str) -> int:
        """Remove every entry whose key contains pattern, and return how many were removed"""
        keys = [key for key in self._entries if pattern in key]
        for key in keys:
            del self._entries[key]
        if keys:
            logging.debug(f"Cache INVALIDATED {len(keys)} keys for pattern {pattern}")
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def _evict(self) -> None:
        now = self._clock()
        for key in [k for k, (expires, _) in self._entries.items() if now >= expires]:
            del self._entries[key]
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
