"""
Callback types for the callback calling convention.

A get-style callback receives the value (``None`` on a miss); a void
callback is told only that the write, remove or clear was acknowledged.
"""

import logging
from typing import Any, Callable, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T", contravariant=True)


class WaterfallGetCallback(Protocol[T]):
    """Receives the result of ``get_async`` / ``contains_async``."""

    def on_success(self, value: Optional[T]) -> None:
        ...

    def on_failure(self, error: BaseException) -> None:
        ...


class WaterfallCallback(Protocol):
    """Receives the outcome of ``put_async`` / ``remove_async`` / ``clear_async``."""

    def on_success(self) -> None:
        ...

    def on_failure(self, error: BaseException) -> None:
        ...


class FunctionCallback:
    """Callback built from plain callables.

    Fits both :class:`WaterfallGetCallback` and :class:`WaterfallCallback`:
    ``on_success`` forwards whatever arguments it is given.  Without an
    ``on_failure`` callable, failures are logged at ERROR.
    """

    def __init__(
        self,
        on_success: Callable[..., Any],
        on_failure: Optional[Callable[[BaseException], Any]] = None,
    ) -> None:
        self._on_success = on_success
        self._on_failure = on_failure

    def on_success(self, *args: Any) -> None:
        self._on_success(*args)

    def on_failure(self, error: BaseException) -> None:
        if self._on_failure is None:
            logger.error("Unhandled cache failure", exc_info=error)
            return
        self._on_failure(error)


def callbacks(
    on_success: Callable[..., Any],
    on_failure: Optional[Callable[[BaseException], Any]] = None,
) -> FunctionCallback:
    """Shorthand for :class:`FunctionCallback`."""
    return FunctionCallback(on_success, on_failure)
