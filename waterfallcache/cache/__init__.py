"""Cache capability and the bundled tiers (memory, Redis)."""

from waterfallcache.cache.base import Cache
from waterfallcache.cache.memory import CacheStats, MemoryCache
from waterfallcache.cache.redis_backend import RedisCache

__all__ = ["Cache", "CacheStats", "MemoryCache", "RedisCache"]
