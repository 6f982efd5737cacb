"""Lazy TTL expiration for any cache tier."""

from waterfallcache.expire.lazy import (
    LazyExpirableCache,
    TimedValue,
    TimeUnit,
    system_clock,
)

__all__ = ["LazyExpirableCache", "TimedValue", "TimeUnit", "system_clock"]
