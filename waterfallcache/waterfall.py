"""
Waterfall cache: an ordered chain of cache tiers behind one interface.

Reads walk the tiers in order and stop at the first hit; the hit is then
written back into every faster tier in a background task.  Writes,
removals and clears go to every tier and succeed only if every tier
acknowledges them.  Nothing is rolled back across tiers.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Set, Tuple

from waterfallcache.adapter import AsyncAdapter, Subscription
from waterfallcache.cache.base import Cache
from waterfallcache.cache.memory import MemoryCache
from waterfallcache.cache.redis_backend import RedisCache
from waterfallcache.callback import WaterfallCallback, WaterfallGetCallback
from waterfallcache.config import Settings, get_settings
from waterfallcache.delivery import DeliveryContext, delivery_from_settings
from waterfallcache.exceptions import ConfigurationError
from waterfallcache.expire.lazy import Clock, LazyExpirableCache

logger = logging.getLogger(__name__)


class WaterfallCache:
    """Ordered multi-tier cache.

    Tier 0 is the fastest and is consulted first.  The tier tuple is fixed
    at construction and shared read-only by all calls.

    Args:
        caches: Tiers in priority order.  May be empty: every read misses
            and every write trivially succeeds.
        delivery: Delivery context for the ``*_async`` callback methods.
        loop: Event loop the ``*_async`` methods run coroutines on.
    """

    def __init__(
        self,
        caches: Sequence[Cache] = (),
        delivery: Optional[DeliveryContext] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._caches: Tuple[Cache, ...] = tuple(caches)
        self._background_tasks: Set[asyncio.Task] = set()
        self._adapter = AsyncAdapter(self, delivery, loop)

    @staticmethod
    def builder() -> "WaterfallCacheBuilder":
        return WaterfallCacheBuilder()

    @property
    def caches(self) -> Tuple[Cache, ...]:
        return self._caches

    # ------------------------------------------------------------------
    # Coroutine API
    # ------------------------------------------------------------------

    async def get(self, key: str, value_type: Any = Any) -> Optional[Any]:
        """Return the first value found walking the tiers in order.

        A tier that raises ends the walk with that exception; later tiers
        are not queried.  On a hit below tier 0 the value is written back
        into the faster tiers without delaying the return.

        Returns:
            The value, or ``None`` if every tier misses.
        """
        for index, cache in enumerate(self._caches):
            value = await cache.get(key, value_type)
            if value is None:
                continue
            logger.debug("Waterfall hit", extra={"cache_key": key, "tier": index})
            if index > 0:
                self._populate_back(key, value, self._caches[:index])
            return value

        logger.debug("Waterfall miss", extra={"cache_key": key})
        return None

    async def put(self, key: str, value: Any) -> bool:
        """Write *value* to every tier.  ``True`` iff every tier acknowledged.

        ``None`` cannot be stored; the tiers refuse it and the result is
        ``False``.
        """
        return await self._broadcast("put", key, lambda cache: cache.put(key, value))

    async def contains(self, key: str) -> bool:
        """Walk the tiers in order and stop at the first that holds *key*.

        Uses each tier's own ``contains``, so expiring tiers answer the
        way their ``get`` would.  Performs no populate-back.
        """
        for cache in self._caches:
            if await cache.contains(key):
                return True
        return False

    async def remove(self, key: str) -> bool:
        """Remove *key* from every tier.  ``True`` iff every tier acknowledged."""
        return await self._broadcast("remove", key, lambda cache: cache.remove(key))

    async def clear(self) -> bool:
        """Clear every tier.  ``True`` iff every tier acknowledged."""
        return await self._broadcast("clear", None, lambda cache: cache.clear())

    async def wait_for_background(self) -> None:
        """Wait for populate-back writes spawned on the running loop."""
        loop = asyncio.get_running_loop()
        while True:
            pending = [t for t in self._background_tasks if t.get_loop() is loop]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Callback API
    # ------------------------------------------------------------------

    def get_async(
        self, key: str, value_type: Any, callback: WaterfallGetCallback
    ) -> Subscription:
        return self._adapter.get_async(key, value_type, callback)

    def put_async(self, key: str, value: Any, callback: WaterfallCallback) -> Subscription:
        return self._adapter.put_async(key, value, callback)

    def contains_async(self, key: str, callback: WaterfallGetCallback) -> Subscription:
        return self._adapter.contains_async(key, callback)

    def remove_async(self, key: str, callback: WaterfallCallback) -> Subscription:
        return self._adapter.remove_async(key, callback)

    def clear_async(self, callback: WaterfallCallback) -> Subscription:
        return self._adapter.clear_async(callback)

    def close(self) -> None:
        """Release the callback loop thread and delivery context."""
        self._adapter.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _populate_back(self, key: str, value: Any, tiers: Sequence[Cache]) -> None:
        task = asyncio.get_running_loop().create_task(self._write_back(key, value, tiers))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _write_back(self, key: str, value: Any, tiers: Sequence[Cache]) -> None:
        # Best effort: a failing tier is logged and the next one is still written.
        for index, cache in enumerate(tiers):
            try:
                acknowledged = await cache.put(key, value)
            except Exception:
                logger.warning(
                    "Populate-back write failed",
                    exc_info=True,
                    extra={"cache_key": key, "tier": index},
                )
                continue
            if not acknowledged:
                logger.warning(
                    "Populate-back write not acknowledged",
                    extra={"cache_key": key, "tier": index},
                )

    async def _broadcast(
        self,
        operation: str,
        key: Optional[str],
        call: Callable[[Cache], Awaitable[bool]],
    ) -> bool:
        if not self._caches:
            return True

        results = await asyncio.gather(
            *(call(cache) for cache in self._caches), return_exceptions=True
        )
        success = True
        for index, result in enumerate(results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Tier %s failed",
                    operation,
                    exc_info=result,
                    extra={"cache_key": key, "tier": index},
                )
                success = False
            elif not result:
                logger.warning(
                    "Tier %s not acknowledged",
                    operation,
                    extra={"cache_key": key, "tier": index},
                )
                success = False
        return success


class WaterfallCacheBuilder:
    """Assembles a :class:`WaterfallCache`.

    Example::

        cache = (
            WaterfallCache.builder()
            .add_cache(MemoryCache())
            .add_cache(RedisCache("redis://localhost:6379/0"))
            .with_delivery(ThreadDelivery())
            .build()
        )
    """

    def __init__(self) -> None:
        self._caches: List[Cache] = []
        self._delivery: Optional[DeliveryContext] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def add_cache(self, cache: Cache) -> "WaterfallCacheBuilder":
        """Append a tier.  Tiers are consulted in the order they are added."""
        self._caches.append(cache)
        return self

    def add_caches(self, *caches: Cache) -> "WaterfallCacheBuilder":
        self._caches.extend(caches)
        return self

    def with_delivery(self, delivery: DeliveryContext) -> "WaterfallCacheBuilder":
        self._delivery = delivery
        return self

    def with_loop(self, loop: asyncio.AbstractEventLoop) -> "WaterfallCacheBuilder":
        self._loop = loop
        return self

    def build(self) -> WaterfallCache:
        return WaterfallCache(self._caches, self._delivery, self._loop)


def create_from_settings(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
) -> WaterfallCache:
    """Build the default memory -> Redis waterfall described by *settings*.

    When expiry is enabled each tier is wrapped in its own
    :class:`~waterfallcache.expire.LazyExpirableCache`.

    Raises:
        ConfigurationError: If no tier is enabled or a setting is invalid.
    """
    settings = settings or get_settings()

    tiers: List[Cache] = []
    if settings.cache.memory_enabled:
        tiers.append(MemoryCache())
    if settings.cache.redis_enabled:
        tiers.append(
            RedisCache(
                redis_url=settings.redis.url,
                key_prefix=settings.redis.key_prefix,
                socket_timeout=settings.redis.socket_timeout_seconds,
            )
        )
    if not tiers:
        raise ConfigurationError("At least one cache tier must be enabled")

    if settings.expiry.enabled:
        try:
            tiers = [
                LazyExpirableCache.from_cache(
                    tier, settings.expiry.expire_after, settings.expiry.unit, clock
                )
                for tier in tiers
            ]
        except ValueError as e:
            raise ConfigurationError(f"Invalid expiry settings: {e}") from e

    logger.info(
        "Waterfall cache created",
        extra={
            "tiers": len(tiers),
            "expiry_enabled": settings.expiry.enabled,
            "delivery_mode": settings.delivery.mode,
        },
    )
    return WaterfallCache(tiers, delivery_from_settings(settings.delivery))
