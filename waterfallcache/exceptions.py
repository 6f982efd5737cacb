"""
Waterfall cache exception hierarchy.

All custom exceptions inherit from WaterfallCacheException so callers can
catch a single base type when they want a broad safety net.
"""

from typing import Optional


class WaterfallCacheException(Exception):
    """Base exception for all waterfall cache errors."""


class ConfigurationError(WaterfallCacheException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


class CacheBackendError(WaterfallCacheException):
    """Raised when a tier backend cannot complete an operation."""


class SerializationError(WaterfallCacheException):
    """Raised when a tier cannot encode or decode a cached value."""


class CacheOperationError(WaterfallCacheException):
    """Raised when a write, remove or clear was not acknowledged.

    Delivered to void callbacks when the aggregate result of the
    operation is ``False``.
    """

    def __init__(self, operation: str, key: Optional[str] = None) -> None:
        self.operation = operation
        self.key = key
        target = f" for key '{key}'" if key is not None else ""
        super().__init__(f"Cache {operation} was not acknowledged{target}")


class CacheClosedError(WaterfallCacheException):
    """Raised when a callback-style call cannot run because the adapter is closed."""
