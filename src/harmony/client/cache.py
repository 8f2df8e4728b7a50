"""Read-through, write-invalidate query cache.

Entries never expire on a timer and are never refreshed behind the caller's
back: a cached value is served until an `invalidate()` covering its key marks
it stale, and the next `read()` of that key goes back to the server.

Every key carries a generation counter that `invalidate()` bumps. A fetch
remembers the generation it started under; if an invalidation lands while the
fetch is in flight, the value it brings back is stored already stale, so the
later invalidation always wins.

Callers get their own copy of a cached value, so mutating a result never
changes what later readers see.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Any, Literal

from harmony.client.http import ApiClient, UnauthorizedError

logger = logging.getLogger(__name__)

OnUnauthorized = Literal["throw", "return_null"]


@dataclass(slots=True)
class CacheEntry:
    value: Any
    stale: bool = False


def key_matches(key: str, prefix: str, exact: bool = False) -> bool:
    """Segment-aware prefix match: `/api/jobs` covers `/api/jobs/5` but not `/api/jobsearch`."""
    if key == prefix:
        return True
    if exact:
        return False
    base = prefix.rstrip("/")
    return key == base or key.startswith(f"{base}/") or key.startswith(f"{base}?")


class QueryCache:
    def __init__(self, client: ApiClient):
        self.client = client
        self._entries: dict[str, CacheEntry] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.RLock()

    def read(self, key: str, on_unauthorized: OnUnauthorized = "throw") -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not entry.stale:
                return copy.deepcopy(entry.value)
            generation = self._generations.setdefault(key, 0)

        try:
            value = self.client.get_json(key)
        except UnauthorizedError:
            if on_unauthorized == "return_null":
                logger.debug("Read of %s unauthorized; returning None", key)
                return None
            raise

        with self._lock:
            stale = self._generations.get(key, 0) != generation
            self._entries[key] = CacheEntry(value=value, stale=stale)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=copy.deepcopy(value))

    def peek(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            return None if entry is None else copy.deepcopy(entry.value)

    def is_stale(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is None or entry.stale

    def invalidate(self, key_or_prefix: str, exact: bool = False) -> int:
        """Mark matching entries stale; returns how many cached entries were marked."""
        marked = 0
        with self._lock:
            for key in set(self._entries) | set(self._generations):
                if not key_matches(key, key_or_prefix, exact):
                    continue
                self._generations[key] = self._generations.get(key, 0) + 1
                entry = self._entries.get(key)
                if entry is not None and not entry.stale:
                    entry.stale = True
                    marked += 1
        logger.debug("Invalidated %s (%s entries)", key_or_prefix, marked)
        return marked

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()

    def close(self) -> None:
        self.clear()
        self.client.close()
