"""Response cache keyed by normalized question text.

Entries expire lazily on read once they are older than the TTL. When a new
key would overflow the cache, the single entry with the oldest insertion
timestamp is evicted. ``hits`` is telemetry only and plays no part in
eviction, so this is not an LRU.
"""

from __future__ import annotations

import copy
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable


_LOGGER = logging.getLogger(__name__)
_NON_WORD = re.compile(r"[^\w\s]")


def normalize_query(query: str) -> str:
    return _NON_WORD.sub("", (query or "").lower()).strip()


@dataclass
class CacheEntry:
    message: str
    sources: list[str]
    products: list[dict[str, Any]] = field(default_factory=list)
    timestamp: float = 0.0
    hits: int = 0


class ResponseCache:
    def __init__(
        self,
        *,
        ttl_seconds: float = 3600.0,
        max_size: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1.")
        self.ttl_seconds = float(ttl_seconds)
        self.max_size = int(max_size)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, query: str) -> CacheEntry | None:
        key = normalize_query(query)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp > self.ttl_seconds:
                del self._entries[key]
                return None
            entry.hits += 1
            _LOGGER.info("Cache hit for %r (%d hits)", key, entry.hits)
            return copy.deepcopy(entry)

    def set(
        self,
        query: str,
        message: str,
        sources: list[str],
        products: list[dict[str, Any]] | None = None,
    ) -> None:
        key = normalize_query(query)
        entry = CacheEntry(
            message=message,
            sources=list(sources),
            products=copy.deepcopy(products or []),
            timestamp=self._clock(),
            hits=0,
        )
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                oldest_key = min(self._entries, key=lambda item: self._entries[item].timestamp)
                del self._entries[oldest_key]
            self._entries[key] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            entries = [
                {
                    "query": key,
                    "hits": entry.hits,
                    "age_seconds": int(now - entry.timestamp),
                }
                for key, entry in self._entries.items()
            ]
        return {
            "size": len(entries),
            "max_size": self.max_size,
            "ttl_seconds": self.ttl_seconds,
            "entries": entries,
        }
