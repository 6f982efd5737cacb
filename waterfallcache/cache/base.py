"""
Cache capability shared by every tier, decorator and the waterfall itself.

Every operation is a coroutine function: calling it only builds the
coroutine, and no work happens until the caller awaits or schedules it.
"""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class Cache(Protocol):
    """Protocol for cache tiers.

    Absence is reported as ``None`` from :meth:`get`, never as an
    exception.  Any exception raised by an operation is a tier failure.

    :meth:`remove` is idempotent: ``True`` means the key is not present
    after the call, whether or not it was present before.
    """

    async def get(self, key: str, value_type: Any = Any) -> Optional[Any]:
        """Return the value stored under *key*, rebuilt as *value_type*, or ``None``."""
        ...

    async def put(self, key: str, value: Any) -> bool:
        """Store *value* under *key*, overwriting.  ``True`` on acknowledged write."""
        ...

    async def contains(self, key: str) -> bool:
        """Return ``True`` iff a following :meth:`get` would return a value."""
        ...

    async def remove(self, key: str) -> bool:
        """Remove *key*.  ``True`` once the key is no longer present."""
        ...

    async def clear(self) -> bool:
        """Remove every entry this instance can see."""
        ...
