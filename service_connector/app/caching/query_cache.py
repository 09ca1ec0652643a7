"""
Bounded cache of read-query results.

Entries are recorded for every successful SELECT but are never consulted to
answer a query; the cache only reflects what was read recently. Eviction is
strictly by insertion order.
"""

import hashlib
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from shared.logging import get_logger


DEFAULT_MAX_ENTRIES = 100


def is_read_query(sql: str) -> bool:
    """Return True for statements starting with SELECT (case-insensitive)."""
    return sql.strip().upper().startswith("SELECT")


def cache_key_for(sql: str) -> str:
    """Derive the cache key from the trimmed SQL text."""
    return hashlib.sha256(sql.strip().encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    """Snapshot of one read-query result."""
    key: str
    result: Any
    cached_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class QueryResultCache:
    """Insertion-ordered cache holding at most ``max_entries`` results."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.logger = get_logger("connector.query_cache")
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def record(self, sql: str, result: Any) -> bool:
        """Store ``result`` for a read query. Returns False when not cacheable."""
        if result is None or not is_read_query(sql):
            return False

        key = cache_key_for(sql)
        entry = CacheEntry(key=key, result=result)

        with self._lock:
            if key in self._entries:
                # Overwrite in place; the original insertion slot is kept.
                self._entries[key] = entry
                return True

            if len(self._entries) >= self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self.logger.debug("Evicted oldest cached query", key=evicted_key)

            self._entries[key] = entry

        return True

    def contains(self, sql: str) -> bool:
        """Check whether a result is held for the given SQL text."""
        with self._lock:
            return cache_key_for(sql) in self._entries

    def entry_for(self, sql: str) -> Optional[CacheEntry]:
        """Return the stored entry for diagnostics, if any."""
        with self._lock:
            return self._entries.get(cache_key_for(sql))

    def keys(self) -> List[str]:
        """Keys in insertion order, oldest first."""
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
