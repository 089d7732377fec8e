"""Lifecycle events, observers, devtools recording, and metrics."""

from batchfetch.observability.devtools import BatchRecord, EventRecorder
from batchfetch.observability.events import (
    BatchDataReceived,
    BatcherCreated,
    BatcherEvent,
    BatchFetchFailed,
    BatchFetchStarted,
    QueryQueued,
)
from batchfetch.observability.metrics import MetricsCollector, MetricsConfig
from batchfetch.observability.observer import (
    BatcherObserver,
    LoggingObserver,
    MultiObserver,
)

__all__ = [
    "BatchDataReceived",
    "BatcherCreated",
    "BatcherEvent",
    "BatchFetchFailed",
    "BatchFetchStarted",
    "QueryQueued",
    "BatcherObserver",
    "LoggingObserver",
    "MultiObserver",
    "EventRecorder",
    "BatchRecord",
    "MetricsCollector",
    "MetricsConfig",
]
