"""Processed-query cache owned by a single processor instance."""

from __future__ import annotations

import hashlib
import re
import time
from collections import OrderedDict
from threading import Lock
from typing import Callable, Protocol, runtime_checkable

from query_copilot.models.query import ProcessedQuery

_WHITESPACE = re.compile(r"\s+")


def cache_key(nl_query: str) -> str:
    normalized = _WHITESPACE.sub(" ", nl_query.strip().lower())
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:32]
    return f"processed_query:{digest}"


@runtime_checkable
class QueryCache(Protocol):
    async def get(self, key: str) -> ProcessedQuery | None: ...

    async def set(self, key: str, value: ProcessedQuery) -> None: ...

    async def invalidate(self, key: str) -> None: ...

    async def clear(self) -> None: ...


class InMemoryQueryCache:
    """Bounded LRU cache with a per-entry TTL.

    Expired entries are dropped when read or when the cache is full; nothing
    runs in the background.
    """

    def __init__(
        self,
        max_entries: int = 256,
        ttl_seconds: float = 7200,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1.")
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[ProcessedQuery, float]] = OrderedDict()
        self._lock = Lock()

    async def get(self, key: str) -> ProcessedQuery | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    async def set(self, key: str, value: ProcessedQuery) -> None:
        if self._ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = (value, self._clock() + self._ttl_seconds)
            self._entries.move_to_end(key)
            if len(self._entries) > self._max_entries:
                self._purge_expired()
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    async def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._entries)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
