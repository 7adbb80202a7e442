"""
Key-value cache used by the repositories for read-through caching.

``MemoryCache`` suits a single worker process. A shared deployment would
plug a networked cache in behind the same ``Cache`` protocol.
"""

import copy
import fnmatch
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol


class Cache(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def delete_pattern(self, pattern: str) -> None: ...

    async def clear(self) -> None: ...

    async def has(self, key: str) -> bool: ...


@dataclass
class _CacheEntry:
    value: Any
    expires_at: Optional[float]


class MemoryCache:
    """In-process cache with per-entry TTL (seconds).

    Values are deep-copied on the way in and out so callers can never mutate
    a cached record in place.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, _CacheEntry] = {}
        self._clock = clock

    def _expired(self, entry: _CacheEntry) -> bool:
        return entry.expires_at is not None and self._clock() > entry.expires_at

    def _live_entry(self, key: str) -> Optional[_CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[Any]:
        entry = self._live_entry(key)
        if entry is None:
            return None
        return copy.deepcopy(entry.value)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._entries[key] = _CacheEntry(value=copy.deepcopy(value), expires_at=expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete every key matching a glob pattern such as ``"OrderRepository:*"``."""
        for key in [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]:
            del self._entries[key]

    async def clear(self) -> None:
        self._entries.clear()

    async def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def cleanup_expired(self) -> int:
        """Drop expired entries, returning how many were removed."""
        expired = [k for k, entry in self._entries.items() if self._expired(entry)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
