"""
In-memory cache tier.

Holds values as live Python objects in a process-local dict, so no
serialisation happens and ``value_type`` is not needed to rebuild them.
There is no eviction policy; entries stay until removed or cleared.
"""

import logging
import threading
from typing import Any, Dict, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CacheStats(BaseModel):
    """Aggregate tier statistics.

    Attributes:
        hits: Total cache hit count.
        misses: Total cache miss count.
        hit_rate: Ratio of hits to total lookups (0.0 if no lookups).
        entry_count: Current number of entries in the tier.
    """

    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    entry_count: int = 0


class MemoryCache:
    """Process-local dict-backed tier.

    Every public method acquires an internal ``threading.Lock`` so the
    tier can be shared between the event-loop thread and direct callers.

    Args:
        name: Label used in log records, handy when several memory tiers
            are chained.
    """

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._store: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._hits: int = 0
        self._misses: int = 0

    async def get(self, key: str, value_type: Any = Any) -> Optional[Any]:
        """Look up *key*.

        Args:
            key: Cache key.
            value_type: Ignored; values are stored as live objects.

        Returns:
            The stored object, or ``None`` on a miss.
        """
        with self._lock:
            if key not in self._store:
                self._misses += 1
                logger.debug("Cache miss", extra={"tier": self.name, "cache_key": key})
                return None
            self._hits += 1
            value = self._store[key]
        logger.debug("Cache hit", extra={"tier": self.name, "cache_key": key})
        return value

    async def put(self, key: str, value: Any) -> bool:
        """Store *value* under *key*.

        ``None`` is the miss marker, so it is refused and ``False`` returned.
        """
        if value is None:
            logger.warning("Refusing to cache None", extra={"tier": self.name, "cache_key": key})
            return False
        with self._lock:
            self._store[key] = value
        logger.debug("Cache set", extra={"tier": self.name, "cache_key": key})
        return True

    async def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    async def remove(self, key: str) -> bool:
        """Remove *key*.  Always ``True``; removing a missing key is a no-op."""
        with self._lock:
            removed = key in self._store
            self._store.pop(key, None)
        if removed:
            logger.debug("Cache entry removed", extra={"tier": self.name, "cache_key": key})
        return True

    async def clear(self) -> bool:
        with self._lock:
            count = len(self._store)
            self._store.clear()
        logger.info("Cache cleared", extra={"tier": self.name, "entries_removed": count})
        return True

    def stats(self) -> CacheStats:
        """Return aggregate tier statistics."""
        with self._lock:
            total = self._hits + self._misses
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / total if total > 0 else 0.0,
                entry_count=len(self._store),
            )

    @property
    def size(self) -> int:
        """Current number of entries in the tier."""
        with self._lock:
            return len(self._store)
