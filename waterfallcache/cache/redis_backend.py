"""
Redis-backed cache tier.

Values are encoded to JSON with ``pydantic_core.to_json`` and rebuilt on
read with a :class:`pydantic.TypeAdapter` for the requested type, so
pydantic models, dataclasses and parametrised containers such as
``list[Item]`` come back as the caller asked for them.
Keys: ``{key_prefix}:{key}``.
"""

import logging
from functools import lru_cache
from typing import Any, Optional

import redis.asyncio as redis
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from waterfallcache.exceptions import CacheBackendError, SerializationError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _adapter_for(value_type: Any) -> TypeAdapter:
    """Return a cached TypeAdapter for *value_type*."""
    return TypeAdapter(value_type)


def _serialize(value: Any) -> str:
    """Serialize *value* to a JSON string for Redis storage."""
    try:
        return to_json(value).decode("utf-8")
    except PydanticSerializationError as e:
        raise SerializationError(f"Cannot serialize {type(value).__name__}: {e}") from e


def _deserialize(data: str, value_type: Any) -> Any:
    """Rebuild a value of *value_type* from its stored JSON."""
    try:
        return _adapter_for(value_type).validate_json(data)
    except ValidationError as e:
        raise SerializationError(f"Cannot deserialize as {value_type!r}: {e}") from e


class RedisCache:
    """Redis-backed tier.

    Args:
        redis_url: Redis connection URL (e.g. redis://localhost:6379/0).
        key_prefix: Prefix for all keys (default ``waterfall``).
        ttl_seconds: Optional native Redis expiry applied on every write.
            Independent of :class:`~waterfallcache.expire.LazyExpirableCache`.
        socket_timeout: Seconds before a Redis call fails with a timeout,
            surfaced as :class:`~waterfallcache.exceptions.CacheBackendError`.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "waterfall",
        ttl_seconds: Optional[int] = None,
        socket_timeout: Optional[float] = None,
        _redis_client: Optional[Any] = None,
    ) -> None:
        if _redis_client is not None:
            self._client = _redis_client
        else:
            self._client = redis.from_url(
                redis_url, decode_responses=True, socket_timeout=socket_timeout
            )
        self._key_prefix = key_prefix.rstrip(":")
        self._ttl_seconds = ttl_seconds

    def _key(self, cache_key: str) -> str:
        """Return full Redis key for a cache key."""
        return f"{self._key_prefix}:{cache_key}"

    async def get(self, key: str, value_type: Any = Any) -> Optional[Any]:
        """Look up *key* and rebuild it as *value_type*.

        Returns:
            The value, or ``None`` on a miss.

        Raises:
            CacheBackendError: If Redis cannot be reached.
            SerializationError: If the stored JSON does not fit *value_type*.
        """
        try:
            data = await self._client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning("Redis get failed", extra={"cache_key": key, "error": str(e)})
            raise CacheBackendError(f"Redis get failed for '{key}'") from e

        if data is None:
            return None
        return _deserialize(data, value_type)

    async def put(self, key: str, value: Any) -> bool:
        """Store *value* under *key*.  ``None`` is refused with ``False``."""
        if value is None:
            logger.warning("Refusing to cache None", extra={"cache_key": key})
            return False
        payload = _serialize(value)
        try:
            await self._client.set(self._key(key), payload, ex=self._ttl_seconds)
        except redis.RedisError as e:
            logger.error("Redis set failed", extra={"cache_key": key, "error": str(e)})
            raise CacheBackendError(f"Redis set failed for '{key}'") from e
        logger.debug("Cache set", extra={"cache_key": key})
        return True

    async def contains(self, key: str) -> bool:
        try:
            return bool(await self._client.exists(self._key(key)))
        except redis.RedisError as e:
            logger.warning("Redis exists failed", extra={"cache_key": key, "error": str(e)})
            raise CacheBackendError(f"Redis exists failed for '{key}'") from e

    async def remove(self, key: str) -> bool:
        """Delete *key*.  ``True`` whether or not it existed."""
        try:
            deleted = await self._client.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning("Redis delete failed", extra={"cache_key": key, "error": str(e)})
            raise CacheBackendError(f"Redis delete failed for '{key}'") from e
        if deleted:
            logger.debug("Cache entry removed", extra={"cache_key": key})
        return True

    async def clear(self) -> bool:
        """Remove all keys under our prefix."""
        try:
            keys = [k async for k in self._client.scan_iter(match=f"{self._key_prefix}:*")]
            if keys:
                await self._client.delete(*keys)
        except redis.RedisError as e:
            logger.error("Redis clear failed", extra={"error": str(e)})
            raise CacheBackendError("Redis clear failed") from e
        logger.info("Cache cleared", extra={"entries_removed": len(keys)})
        return True

    async def close(self) -> None:
        """Close the underlying Redis connection pool."""
        await self._client.aclose()
