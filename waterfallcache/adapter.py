"""
Callback adapter for any cache.

Runs the cache's coroutines on an event loop and hands each outcome to a
callback through a :class:`~waterfallcache.delivery.DeliveryContext`.
Each call returns a :class:`Subscription`; every subscription gets exactly
one terminal callback (success or failure) unless it is cancelled first,
and none once :meth:`Subscription.cancel` has returned.
"""

import asyncio
import logging
import threading
from concurrent.futures import CancelledError, Future
from typing import Any, Awaitable, Callable, Dict, Optional

from waterfallcache.cache.base import Cache
from waterfallcache.callback import WaterfallCallback, WaterfallGetCallback
from waterfallcache.delivery import DeliveryContext, ImmediateDelivery
from waterfallcache.exceptions import CacheClosedError, CacheOperationError

logger = logging.getLogger(__name__)


class EventLoopThread:
    """An asyncio event loop running forever in a daemon thread."""

    def __init__(self, name: str = "waterfall-loop") -> None:
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The running loop, starting the thread on first access."""
        with self._lock:
            if self._loop is None:
                self._start()
            return self._loop

    def _start(self) -> None:
        started = threading.Event()
        loop = asyncio.new_event_loop()

        def run() -> None:
            asyncio.set_event_loop(loop)
            loop.call_soon(started.set)
            loop.run_forever()

        self._thread = threading.Thread(target=run, name=self._name, daemon=True)
        self._thread.start()
        started.wait()
        self._loop = loop
        logger.info("Event loop thread started", extra={"thread_name": self._name})

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and join the thread.  Safe to call twice."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                # Still running a callback; the loop stops when it returns.
                logger.warning(
                    "Event loop thread did not stop in time",
                    extra={"thread_name": self._name, "timeout": timeout},
                )
                return
        loop.close()
        logger.info("Event loop thread stopped", extra={"thread_name": self._name})


class Subscription:
    """Handle for one callback-style call."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._terminated = False
        self._future: Optional[Future] = None

    def _attach(self, future: Future) -> None:
        self._future = future

    def _claim(self) -> bool:
        """Reserve the single terminal delivery.  ``False`` if cancelled or taken."""
        with self._lock:
            if self._cancelled or self._terminated:
                return False
            self._terminated = True
            return True

    def cancel(self) -> None:
        """Stop forwarding the outcome and cancel the pending operation.

        Populate-back writes already spawned by a waterfall read keep
        running; they are not part of this call.
        """
        with self._lock:
            if self._terminated or self._cancelled:
                return
            self._cancelled = True
            future = self._future
        if future is not None:
            future.cancel()

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    @property
    def done(self) -> bool:
        """``True`` once the terminal callback has been claimed or the call cancelled."""
        with self._lock:
            return self._terminated or self._cancelled


class AsyncAdapter:
    """Callback calling convention on top of a :class:`~waterfallcache.cache.Cache`.

    Args:
        cache: The cache whose coroutines are run.
        delivery: Where callbacks are invoked.  Defaults to
            :class:`~waterfallcache.delivery.ImmediateDelivery`.
        loop: Event loop the coroutines run on.  Without one, the adapter
            starts its own loop thread on first use.  Pass the loop your
            tiers are bound to (e.g. a Redis client) when there is one.
    """

    def __init__(
        self,
        cache: Cache,
        delivery: Optional[DeliveryContext] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._cache = cache
        self._delivery = delivery or ImmediateDelivery()
        self._loop = loop
        self._loop_thread: Optional[EventLoopThread] = None
        self._lock = threading.Lock()
        self._closed = False
        self._pending: Dict[Subscription, Any] = {}

    def _event_loop(self) -> asyncio.AbstractEventLoop:
        # Caller holds self._lock.
        if self._loop is not None:
            return self._loop
        if self._loop_thread is None:
            self._loop_thread = EventLoopThread()
        return self._loop_thread.loop

    # ------------------------------------------------------------------
    # Public callback API
    # ------------------------------------------------------------------

    def get_async(
        self, key: str, value_type: Any, callback: WaterfallGetCallback
    ) -> Subscription:
        return self._subscribe(
            lambda: self._cache.get(key, value_type), callback, self._value_result
        )

    def contains_async(self, key: str, callback: WaterfallGetCallback) -> Subscription:
        return self._subscribe(
            lambda: self._cache.contains(key), callback, self._value_result
        )

    def put_async(self, key: str, value: Any, callback: WaterfallCallback) -> Subscription:
        return self._subscribe(
            lambda: self._cache.put(key, value), callback, _void_result("put", key)
        )

    def remove_async(self, key: str, callback: WaterfallCallback) -> Subscription:
        return self._subscribe(
            lambda: self._cache.remove(key), callback, _void_result("remove", key)
        )

    def clear_async(self, callback: WaterfallCallback) -> Subscription:
        return self._subscribe(
            lambda: self._cache.clear(), callback, _void_result("clear", None)
        )

    def close(self) -> None:
        """Stop the owned loop thread and release the delivery context.

        Calls still in flight get ``on_failure(CacheClosedError)`` unless
        their outcome was already delivered.  Later calls fail the same
        way straight away.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            loop_thread = self._loop_thread
            self._loop_thread = None
        if loop_thread is not None:
            loop_thread.stop()
        self._delivery.close()

        with self._lock:
            pending = list(self._pending.items())
            self._pending.clear()
        for subscription, callback in pending:
            self._deliver(
                subscription,
                callback.on_failure,
                CacheClosedError("Cache adapter closed before the operation completed"),
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _subscribe(
        self,
        operation: Callable[[], Awaitable[Any]],
        callback: Any,
        on_result: Callable[[Any, Any], None],
    ) -> Subscription:
        subscription = Subscription()
        with self._lock:
            closed = self._closed
            if not closed:
                loop = self._event_loop()
                self._pending[subscription] = callback
        if closed:
            self._deliver(
                subscription, callback.on_failure, CacheClosedError("Cache adapter is closed")
            )
            return subscription

        coro = self._run(operation, subscription, callback, on_result)
        try:
            future = asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError as e:
            # The loop was closed under us.
            coro.close()
            with self._lock:
                self._pending.pop(subscription, None)
            self._deliver(
                subscription, callback.on_failure, CacheClosedError(f"Cache event loop is closed: {e}")
            )
            return subscription
        subscription._attach(future)
        return subscription

    async def _run(
        self,
        operation: Callable[[], Awaitable[Any]],
        subscription: Subscription,
        callback: Any,
        on_result: Callable[[Any, Any], None],
    ) -> None:
        # Outcomes are always dispatched from the loop thread.
        try:
            result = await operation()
        except asyncio.CancelledError:
            if not subscription.cancelled:
                self._dispatch(
                    subscription,
                    callback.on_failure,
                    CancelledError("Cache operation was cancelled"),
                )
            raise
        except Exception as error:
            if not subscription.cancelled:
                self._dispatch(subscription, callback.on_failure, error)
        else:
            if not subscription.cancelled:
                self._dispatch(subscription, on_result, callback, result)
        finally:
            with self._lock:
                self._pending.pop(subscription, None)

    def _dispatch(self, subscription: Subscription, fn: Callable[..., Any], *args: Any) -> None:
        try:
            self._delivery.dispatch(self._deliver, subscription, fn, *args)
        except RuntimeError:
            logger.warning("Delivery context unavailable, delivering inline", exc_info=True)
            self._deliver(subscription, fn, *args)

    @staticmethod
    def _value_result(callback: Any, value: Any) -> None:
        callback.on_success(value)

    @staticmethod
    def _deliver(subscription: Subscription, fn: Callable[..., Any], *args: Any) -> None:
        if not subscription._claim():
            return
        try:
            fn(*args)
        except Exception:
            logger.exception("Cache callback raised")


def _void_result(operation: str, key: Optional[str]) -> Callable[[Any, Any], None]:
    """Map a boolean acknowledgement onto a void callback."""

    def deliver(callback: Any, acknowledged: Any) -> None:
        if acknowledged:
            callback.on_success()
        else:
            callback.on_failure(CacheOperationError(operation, key))

    return deliver
