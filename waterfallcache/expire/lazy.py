"""
Lazily expirable cache decorator.

Wraps any :class:`~waterfallcache.cache.Cache` and stores each value in a
:class:`TimedValue` envelope stamped with the write time.  Being lazy,
entries only expire when they are read: a stale envelope is removed from
the wrapped cache and reported as a miss.  There is no background sweep,
so stale entries stay in storage until the next access.
"""

import logging
import time
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

from waterfallcache.cache.base import Cache
from waterfallcache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


class TimeUnit(str, Enum):
    """Unit for the ``expire_after`` value."""

    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

    def to_millis(self, value: float) -> int:
        return int(value * _MILLIS_PER_UNIT[self])


_MILLIS_PER_UNIT = {
    TimeUnit.MILLISECONDS: 1,
    TimeUnit.SECONDS: 1_000,
    TimeUnit.MINUTES: 60_000,
    TimeUnit.HOURS: 3_600_000,
    TimeUnit.DAYS: 86_400_000,
}


class TimedValue(BaseModel, Generic[T]):
    """A cached value together with the time it was written.

    Attributes:
        value: The caller's payload.
        added_on: Epoch milliseconds at write time, set by the decorator.
    """

    value: T
    added_on: int

    model_config = ConfigDict(arbitrary_types_allowed=True)


class LazyExpirableCache:
    """TTL decorator around a single cache tier.

    Args:
        cache: The underlying cache that holds the envelopes.
        expire_millis: Entry lifetime in milliseconds.  Must be positive.
        clock: Callable returning epoch milliseconds.  Defaults to the
            wall clock; tests inject a controllable one.

    Raises:
        ConfigurationError: If ``expire_millis`` is not positive.
    """

    def __init__(
        self,
        cache: Cache,
        expire_millis: int,
        clock: Optional[Clock] = None,
    ) -> None:
        if expire_millis <= 0:
            raise ConfigurationError(
                f"expire_millis must be positive, got {expire_millis}"
            )
        self._cache = cache
        self._expire_millis = expire_millis
        self._clock = clock or system_clock

    @classmethod
    def from_cache(
        cls,
        cache: Cache,
        expire_after: float,
        unit: TimeUnit = TimeUnit.SECONDS,
        clock: Optional[Clock] = None,
    ) -> "LazyExpirableCache":
        """Create a lazily expirable cache from an actual cache.

        Args:
            cache: The underlying cache that will hold the values.
            expire_after: Lifetime expressed in *unit*.
            unit: Time unit of *expire_after*; a plain string such as
                ``"minutes"`` is accepted too.
            clock: Optional epoch-millis clock.
        """
        return cls(cache, TimeUnit(unit).to_millis(expire_after), clock)

    @property
    def expire_millis(self) -> int:
        return self._expire_millis

    async def get(self, key: str, value_type: Any = Any) -> Optional[Any]:
        """Return the payload under *key*, or ``None`` if absent or stale.

        The clock is sampled once, before the underlying read.  A stale
        envelope is removed from the underlying cache before returning.
        """
        now = self._clock()
        timed_value = await self._cache.get(key, TimedValue[value_type])
        if timed_value is None:
            return None

        if timed_value.added_on + self._expire_millis <= now:
            logger.debug(
                "Cache entry expired",
                extra={"cache_key": key, "added_on": timed_value.added_on, "now": now},
            )
            await self._cache.remove(key)
            return None

        return timed_value.value

    async def put(self, key: str, value: Any) -> bool:
        return await self._cache.put(key, TimedValue(value=value, added_on=self._clock()))

    async def contains(self, key: str) -> bool:
        """Presence as judged by :meth:`get`, so stale entries report ``False``."""
        return await self.get(key) is not None

    async def remove(self, key: str) -> bool:
        return await self._cache.remove(key)

    async def clear(self) -> bool:
        return await self._cache.clear()
