"""
Delivery contexts: where callback-style results are invoked.

``ImmediateDelivery`` runs callbacks on whichever thread finished the work
(the event-loop thread).  ``ThreadDelivery`` hands them to one named
worker thread, ``ExecutorDelivery`` to any ``concurrent.futures``
executor, and ``LoopDelivery`` to an asyncio loop such as the
application's main loop.
"""

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Protocol, runtime_checkable

from waterfallcache.config import DeliverySettings
from waterfallcache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@runtime_checkable
class DeliveryContext(Protocol):
    """Protocol for callback delivery contexts."""

    def dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        """Arrange for ``fn(*args)`` to run in this context."""
        ...

    def close(self) -> None:
        """Release any thread or executor owned by the context."""
        ...


class ImmediateDelivery:
    """Run callbacks synchronously on the completing thread."""

    def dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        fn(*args)

    def close(self) -> None:
        pass


class ExecutorDelivery:
    """Submit callbacks to a ``concurrent.futures`` executor.

    Args:
        executor: Executor that runs the callbacks.
        owns_executor: Shut the executor down on :meth:`close`.
    """

    def __init__(self, executor: Executor, owns_executor: bool = False) -> None:
        self._executor = executor
        self._owns_executor = owns_executor

    def dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        self._executor.submit(fn, *args)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)


class ThreadDelivery(ExecutorDelivery):
    """Deliver every callback on one dedicated worker thread.

    Callbacks run in submission order.  The thread name starts with
    *name*.
    """

    def __init__(self, name: str = "waterfall-delivery") -> None:
        super().__init__(
            ThreadPoolExecutor(max_workers=1, thread_name_prefix=name),
            owns_executor=True,
        )
        self.name = name


class LoopDelivery:
    """Deliver callbacks on an asyncio event loop via ``call_soon_threadsafe``."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        self._loop.call_soon_threadsafe(fn, *args)

    def close(self) -> None:
        pass


def delivery_from_settings(settings: DeliverySettings) -> DeliveryContext:
    """Build the delivery context named by ``settings.mode``.

    Raises:
        ConfigurationError: If the mode is not ``immediate`` or ``thread``.
    """
    mode = settings.mode.lower()
    if mode == "immediate":
        return ImmediateDelivery()
    if mode == "thread":
        return ThreadDelivery(settings.thread_name)
    raise ConfigurationError(f"Unknown delivery mode '{settings.mode}'")
