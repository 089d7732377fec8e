"""
In-memory event recorder for inspecting batchers while developing.

:class:`EventRecorder` keeps a bounded history of lifecycle events per
batcher name and can fold them into a per-batch view (which queries went
into each batch, how long it was scheduled for, and how it ended).
"""

import logging
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional

from pydantic import BaseModel, Field

from batchfetch.config import get_settings
from batchfetch.observability.events import (
    BatchDataReceived,
    BatcherCreated,
    BatcherEvent,
    BatchFetchFailed,
    BatchFetchStarted,
    QueryQueued,
)
from batchfetch.observability.observer import BatcherObserver

logger = logging.getLogger(__name__)


class BatchRecord(BaseModel):
    """Folded view of one batch.

    Attributes:
        seq: Batch sequence number.
        status: ``queued``, ``fetching``, ``resolved``, or ``failed``.
        queries: Queries in the batch, in insertion order.
        scheduled_ms: Delay returned by the scheduler for the last query.
        duration_ms: Fetch duration once the batch has completed.
        data: Fetcher result for a resolved batch.
        error: ``"<type>: <message>"`` for a failed batch.
    """

    seq: int
    status: str = "queued"
    queries: List[Any] = Field(default_factory=list)
    scheduled_ms: Optional[float] = None
    duration_ms: Optional[float] = None
    data: Any = None
    error: Optional[str] = None


class EventRecorder(BatcherObserver):
    """Record lifecycle events from any number of batchers.

    Args:
        max_events: History kept per batcher; older events are dropped.
            ``None`` reads the ``observability.max_events`` setting.
    """

    def __init__(self, max_events: Optional[int] = None) -> None:
        if max_events is None:
            max_events = get_settings().observability.max_events
        self._max_events = max_events
        self._events: Dict[str, Deque[BatcherEvent]] = defaultdict(
            lambda: deque(maxlen=self._max_events)
        )

    # ------------------------------------------------------------------
    # Observer hooks
    # ------------------------------------------------------------------

    def _record(self, event: BatcherEvent) -> None:
        self._events[event.name].append(event)

    def created(self, event: BatcherCreated) -> None:
        self._record(event)

    def queued(self, event: QueryQueued) -> None:
        self._record(event)

    def fetch_started(self, event: BatchFetchStarted) -> None:
        self._record(event)

    def data_received(self, event: BatchDataReceived) -> None:
        self._record(event)

    def fetch_failed(self, event: BatchFetchFailed) -> None:
        self._record(event)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def names(self) -> List[str]:
        """Names of every batcher seen so far."""
        return list(self._events)

    def events(self, name: str) -> List[BatcherEvent]:
        """Recorded events for one batcher, oldest first."""
        return list(self._events.get(name, ()))

    def batches(self, name: str) -> List[BatchRecord]:
        """Fold one batcher's events into per-batch records.

        Args:
            name: Batcher name.

        Returns:
            Records ordered by sequence number.  Batches whose events
            fell out of the history window are omitted or partial.
        """
        records: Dict[int, BatchRecord] = {}

        for event in self._events.get(name, ()):
            if isinstance(event, BatcherCreated):
                continue
            record = records.setdefault(event.seq, BatchRecord(seq=event.seq))
            if isinstance(event, QueryQueued):
                record.queries = list(event.batch)
                record.scheduled_ms = event.scheduled_ms
            elif isinstance(event, BatchFetchStarted):
                record.status = "fetching"
                record.queries = list(event.batch)
            elif isinstance(event, BatchDataReceived):
                record.status = "resolved"
                record.data = event.data
                record.duration_ms = event.duration_ms
            elif isinstance(event, BatchFetchFailed):
                record.status = "failed"
                record.error = f"{event.error_type}: {event.message}"
                record.duration_ms = event.duration_ms

        return [records[seq] for seq in sorted(records)]

    def clear(self, name: Optional[str] = None) -> None:
        """Forget recorded events for one batcher, or for all of them."""
        if name is None:
            self._events.clear()
        else:
            self._events.pop(name, None)
        logger.debug("Event history cleared", extra={"batcher": name or "*"})
