"""
Observer interface for batcher lifecycle events.

Observers are injected into a batcher at construction time.  They
receive events in order but can never influence timing or results: an
observer that raises is logged and otherwise ignored.
"""

import logging
from typing import Callable, List, Sequence

from batchfetch.observability.events import (
    BatchDataReceived,
    BatcherCreated,
    BatcherEvent,
    BatchFetchFailed,
    BatchFetchStarted,
    QueryQueued,
)

logger = logging.getLogger(__name__)


class BatcherObserver:
    """Base observer with no-op hooks.

    Subclasses override only the hooks they care about.
    """

    def created(self, event: BatcherCreated) -> None:
        pass

    def queued(self, event: QueryQueued) -> None:
        pass

    def fetch_started(self, event: BatchFetchStarted) -> None:
        pass

    def data_received(self, event: BatchDataReceived) -> None:
        pass

    def fetch_failed(self, event: BatchFetchFailed) -> None:
        pass


def _hook_for(observer: BatcherObserver, event: BatcherEvent) -> Callable[[BatcherEvent], None]:
    return getattr(observer, event.kind)


def notify(observer: BatcherObserver, event: BatcherEvent) -> None:
    """Deliver ``event`` to ``observer``, logging any failure.

    Args:
        observer: Target observer.
        event: Lifecycle event; its ``kind`` selects the hook.
    """
    try:
        _hook_for(observer, event)(event)
    except Exception as exc:
        logger.warning(
            "Observer failed; event dropped",
            extra={
                "observer": type(observer).__name__,
                "event": event.kind,
                "batcher": event.name,
                "seq": event.seq,
                "error": str(exc),
            },
            exc_info=True,
        )


class MultiObserver(BatcherObserver):
    """Fan events out to several observers in registration order.

    Args:
        observers: Observers to notify.  A failing observer does not
            prevent the others from receiving the event.
    """

    def __init__(self, *observers: BatcherObserver) -> None:
        self._observers: List[BatcherObserver] = list(observers)

    @property
    def observers(self) -> Sequence[BatcherObserver]:
        return tuple(self._observers)

    def add(self, observer: BatcherObserver) -> None:
        self._observers.append(observer)

    def _dispatch(self, event: BatcherEvent) -> None:
        for observer in self._observers:
            notify(observer, event)

    def created(self, event: BatcherCreated) -> None:
        self._dispatch(event)

    def queued(self, event: QueryQueued) -> None:
        self._dispatch(event)

    def fetch_started(self, event: BatchFetchStarted) -> None:
        self._dispatch(event)

    def data_received(self, event: BatchDataReceived) -> None:
        self._dispatch(event)

    def fetch_failed(self, event: BatchFetchFailed) -> None:
        self._dispatch(event)


class LoggingObserver(BatcherObserver):
    """Log every lifecycle event through the standard logging module.

    Args:
        level: Log level used for non-error events.
        logger_name: Logger to write to.
    """

    def __init__(
        self,
        level: int = logging.DEBUG,
        logger_name: str = "batchfetch.events",
    ) -> None:
        self._level = level
        self._logger = logging.getLogger(logger_name)

    def created(self, event: BatcherCreated) -> None:
        self._logger.log(
            self._level,
            "Batcher created",
            extra={"batcher": event.name, "scheduler": event.scheduler},
        )

    def queued(self, event: QueryQueued) -> None:
        self._logger.log(
            self._level,
            "Query queued",
            extra={
                "batcher": event.name,
                "seq": event.seq,
                "batch_size": len(event.batch),
                "scheduled_ms": event.scheduled_ms,
            },
        )

    def fetch_started(self, event: BatchFetchStarted) -> None:
        self._logger.log(
            self._level,
            "Batch fetch started",
            extra={
                "batcher": event.name,
                "seq": event.seq,
                "batch_size": len(event.batch),
            },
        )

    def data_received(self, event: BatchDataReceived) -> None:
        self._logger.log(
            self._level,
            "Batch data received",
            extra={
                "batcher": event.name,
                "seq": event.seq,
                "duration_ms": round(event.duration_ms, 3),
            },
        )

    def fetch_failed(self, event: BatchFetchFailed) -> None:
        self._logger.error(
            "Batch fetch failed",
            extra={
                "batcher": event.name,
                "seq": event.seq,
                "error_type": event.error_type,
                "error": event.message,
            },
        )
