"""
Externally settled result shared by every caller of one batch.

A :class:`Deferred` wraps a single ``asyncio.Future`` whose outcome is
set from outside (by the batcher once the fetcher completes).  Callers
never await the shared future directly; each gets its own chained
future from :meth:`Deferred.then` so that extracting one caller's value
cannot disturb the others.
"""

import asyncio
import logging
from typing import Callable, Generic, Optional, TypeVar

from batchfetch.exceptions import DeferredStateError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class Deferred(Generic[T]):
    """A one-shot result settled by :meth:`resolve` or :meth:`reject`.

    The underlying future is bound lazily to the running event loop the
    first time it is needed, so a deferred can be constructed before any
    loop exists.

    Args:
        loop: Event loop to bind to.  ``None`` uses the running loop at
            first use.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._future: Optional[asyncio.Future] = None

    @property
    def future(self) -> asyncio.Future:
        """The shared future, created on first access."""
        if self._future is None:
            loop = self._loop or asyncio.get_running_loop()
            self._future = loop.create_future()
        return self._future

    @property
    def settled(self) -> bool:
        """Whether the deferred has been resolved, rejected, or cancelled."""
        return self._future is not None and self._future.done()

    def resolve(self, value: T) -> None:
        """Settle the deferred with a value.

        Raises:
            DeferredStateError: If the deferred is already settled.
        """
        if self.settled:
            raise DeferredStateError("Deferred is already settled")
        self.future.set_result(value)

    def reject(self, error: BaseException) -> None:
        """Settle the deferred with an exception.

        Raises:
            DeferredStateError: If the deferred is already settled.
        """
        if self.settled:
            raise DeferredStateError("Deferred is already settled")
        self.future.set_exception(error)

    def cancel(self) -> None:
        """Cancel the deferred; every chained future is cancelled too.

        Raises:
            DeferredStateError: If the deferred is already settled.
        """
        if self.settled:
            raise DeferredStateError("Deferred is already settled")
        self.future.cancel()

    def then(self, fn: Callable[[T], R]) -> "asyncio.Future[R]":
        """Return a new future settled from this deferred's outcome.

        On success the new future holds ``fn(value)``; on failure it holds
        the same exception object.  If ``fn`` raises, only the returned
        future fails.

        Args:
            fn: Projection applied to the settled value.

        Returns:
            A future bound to the same loop as the shared one.
        """
        source = self.future
        chained: asyncio.Future = source.get_loop().create_future()

        def _settle(done: asyncio.Future) -> None:
            if chained.done():
                # The caller cancelled its own future; nothing to deliver.
                return
            if done.cancelled():
                chained.cancel()
                return
            error = done.exception()
            if error is not None:
                chained.set_exception(error)
                return
            try:
                chained.set_result(fn(done.result()))
            except Exception as exc:
                logger.debug(
                    "Result projection failed",
                    extra={"error": str(exc)},
                )
                chained.set_exception(exc)

        source.add_done_callback(_settle)
        return chained

    def __repr__(self) -> str:
        if self._future is None:
            state = "unbound"
        elif not self._future.done():
            state = "pending"
        elif self._future.cancelled():
            state = "cancelled"
        elif self._future.exception() is not None:
            state = "rejected"
        else:
            state = "resolved"
        return f"<Deferred {state}>"
