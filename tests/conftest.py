"""Shared fixtures for waterfall cache tests."""

from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from waterfallcache.cache.memory import MemoryCache


class ManualClock:
    """Epoch-millis clock that only moves when told to."""

    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


class StubTier(MemoryCache):
    """Memory tier that records calls and can be told to fail or refuse.

    Args:
        name: Tier label.
        fail_on: Operation name -> exception raised when it is called.
        refuse: Operations that return ``False`` instead of ``True``.
        log: Optional list shared between tiers; receives
            ``(name, operation, arg)`` for every call, in call order.
    """

    def __init__(
        self,
        name: str = "stub",
        fail_on: Optional[Dict[str, Exception]] = None,
        refuse: Tuple[str, ...] = (),
        log: Optional[List[Tuple[str, str, Any]]] = None,
    ) -> None:
        super().__init__(name)
        self.calls: List[Tuple[str, Any]] = []
        self._fail_on = fail_on or {}
        self._refuse = refuse
        self._log = log

    def _check(self, operation: str, arg: Any) -> bool:
        self.calls.append((operation, arg))
        if self._log is not None:
            self._log.append((self.name, operation, arg))
        if operation in self._fail_on:
            raise self._fail_on[operation]
        return operation not in self._refuse

    def ops(self, operation: str) -> List[Any]:
        return [arg for op, arg in self.calls if op == operation]

    async def get(self, key: str, value_type: Any = Any) -> Optional[Any]:
        self._check("get", key)
        return await super().get(key, value_type)

    async def put(self, key: str, value: Any) -> bool:
        if not self._check("put", key):
            return False
        return await super().put(key, value)

    async def contains(self, key: str) -> bool:
        self._check("contains", key)
        return await super().contains(key)

    async def remove(self, key: str) -> bool:
        if not self._check("remove", key):
            return False
        return await super().remove(key)

    async def clear(self) -> bool:
        if not self._check("clear", None):
            return False
        return await super().clear()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def make_tier() -> Callable[..., StubTier]:
    """Factory for :class:`StubTier` instances."""
    return StubTier
