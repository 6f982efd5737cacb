"""Multi-tier waterfall cache with lazy TTL expiration and callback delivery."""

from waterfallcache.adapter import AsyncAdapter, EventLoopThread, Subscription
from waterfallcache.cache import Cache, CacheStats, MemoryCache, RedisCache
from waterfallcache.callback import (
    FunctionCallback,
    WaterfallCallback,
    WaterfallGetCallback,
    callbacks,
)
from waterfallcache.delivery import (
    DeliveryContext,
    ExecutorDelivery,
    ImmediateDelivery,
    LoopDelivery,
    ThreadDelivery,
)
from waterfallcache.exceptions import (
    CacheBackendError,
    CacheClosedError,
    CacheOperationError,
    ConfigurationError,
    SerializationError,
    WaterfallCacheException,
)
from waterfallcache.expire import LazyExpirableCache, TimedValue, TimeUnit
from waterfallcache.waterfall import (
    WaterfallCache,
    WaterfallCacheBuilder,
    create_from_settings,
)

__version__ = "1.0.0"

__all__ = [
    "AsyncAdapter",
    "Cache",
    "CacheBackendError",
    "CacheClosedError",
    "CacheOperationError",
    "CacheStats",
    "ConfigurationError",
    "DeliveryContext",
    "EventLoopThread",
    "ExecutorDelivery",
    "FunctionCallback",
    "ImmediateDelivery",
    "LazyExpirableCache",
    "LoopDelivery",
    "MemoryCache",
    "RedisCache",
    "SerializationError",
    "Subscription",
    "ThreadDelivery",
    "TimedValue",
    "TimeUnit",
    "WaterfallCache",
    "WaterfallCacheBuilder",
    "WaterfallCacheException",
    "WaterfallCallback",
    "WaterfallGetCallback",
    "callbacks",
    "create_from_settings",
]
