"""
Lifecycle events emitted by a :class:`~batchfetch.batching.engine.Batcher`.

Every event is keyed by the batcher ``name`` and the batch sequence
number ``seq`` it belongs to.  Events are informational only.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatcherEvent(BaseModel):
    """Common fields of every lifecycle event.

    Attributes:
        name: Display name of the emitting batcher.
        seq: Sequence number of the batch the event belongs to.
        timestamp: UTC time the event was emitted.
    """

    name: str
    seq: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = {"arbitrary_types_allowed": True}

    @property
    def kind(self) -> str:
        return "event"


class BatcherCreated(BatcherEvent):
    """Emitted once when a batcher is constructed."""

    scheduler: str = "default"

    @property
    def kind(self) -> str:
        return "created"


class QueryQueued(BatcherEvent):
    """Emitted for every ``fetch`` call.

    Attributes:
        query: The query just added.
        batch: The pending batch after the addition, in insertion order.
        scheduled_ms: Delay returned by the scheduler.
        start_ms: Loop time (ms) the batch received its first query.
        latest_ms: Loop time (ms) of this query.
    """

    query: Any = None
    batch: List[Any] = Field(default_factory=list)
    scheduled_ms: float = 0.0
    start_ms: float = 0.0
    latest_ms: float = 0.0

    @property
    def kind(self) -> str:
        return "queued"


class BatchFetchStarted(BatcherEvent):
    """Emitted when the timer fires and the fetcher is invoked."""

    batch: List[Any] = Field(default_factory=list)

    @property
    def kind(self) -> str:
        return "fetch_started"


class BatchDataReceived(BatcherEvent):
    """Emitted when the fetcher returns successfully."""

    data: Any = None
    duration_ms: float = 0.0

    @property
    def kind(self) -> str:
        return "data_received"


class BatchFetchFailed(BatcherEvent):
    """Emitted when the fetcher raises.

    Attributes:
        error: The exception raised by the fetcher.  Excluded from
            serialisation.
        error_type: Class name of the exception.
        message: ``str(error)``.
    """

    error: Optional[BaseException] = Field(default=None, exclude=True)
    error_type: str = ""
    message: str = ""
    duration_ms: float = 0.0

    @property
    def kind(self) -> str:
        return "fetch_failed"
