"""
MetricsCollector -- batcher metrics with Prometheus text exposition.

Plugs into a batcher as an observer and aggregates batch counts, batch
sizes, fetch latencies, scheduled delays and errors per batcher name.
Provides Prometheus text exposition output and windowed summary
queries.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from batchfetch.config import get_settings
from batchfetch.exceptions import ObservabilityError
from batchfetch.observability.events import (
    BatchDataReceived,
    BatchFetchFailed,
    BatchFetchStarted,
    QueryQueued,
)
from batchfetch.observability.observer import BatcherObserver

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the MetricsCollector.

    Attributes:
        enabled: Whether metrics collection is active.
        retention_hours: How long to keep raw data points in memory.
    """

    enabled: bool = True
    retention_hours: int = Field(default=24, ge=1)


# ---------------------------------------------------------------------------
# Internal metric types
# ---------------------------------------------------------------------------


class _MetricPoint(BaseModel):
    """A single timestamped metric data point."""

    timestamp: datetime
    value: float
    labels: Dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# MetricsCollector
# ---------------------------------------------------------------------------


class MetricsCollector(BatcherObserver):
    """Observer that collects, aggregates, and exposes batcher metrics.

    Runs on the event loop of the batchers it observes, so no locking is
    done.  Share one collector between batchers on the same loop only.

    Args:
        config: Optional configuration; defaults come from settings.
    """

    # Histogram bucket boundaries
    _BATCH_SIZE_BUCKETS: List[float] = [1, 2, 5, 10, 25, 50, 100, 250]
    _LATENCY_BUCKETS: List[float] = [
        1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000,
    ]
    _DELAY_BUCKETS: List[float] = [0, 1, 5, 10, 25, 50, 100, 250, 1000]

    def __init__(self, config: Optional[MetricsConfig] = None) -> None:
        if config is None:
            _s = get_settings().observability
            config = MetricsConfig(
                enabled=_s.enabled,
                retention_hours=_s.retention_hours,
            )
        self._config = config

        # Counters  (label_key -> count)
        self._batches_total: Dict[str, float] = defaultdict(float)
        self._queries_total: Dict[str, float] = defaultdict(float)
        self._errors_total: Dict[str, float] = defaultdict(float)

        # Histograms
        self._batch_size_observations: List[_MetricPoint] = []
        self._latency_observations: List[_MetricPoint] = []
        self._delay_observations: List[_MetricPoint] = []

        logger.info(
            "MetricsCollector initialised",
            extra={"enabled": self._config.enabled},
        )

    # ------------------------------------------------------------------
    # Observer hooks
    # ------------------------------------------------------------------

    def queued(self, event: QueryQueued) -> None:
        if not self._config.enabled:
            return
        self._queries_total[f'batcher="{event.name}"'] += 1
        self._delay_observations.append(
            _MetricPoint(
                timestamp=event.timestamp,
                value=float(event.scheduled_ms),
                labels={"batcher": event.name},
            )
        )

    def fetch_started(self, event: BatchFetchStarted) -> None:
        if not self._config.enabled:
            return
        self._batch_size_observations.append(
            _MetricPoint(
                timestamp=event.timestamp,
                value=float(len(event.batch)),
                labels={"batcher": event.name},
            )
        )

    def data_received(self, event: BatchDataReceived) -> None:
        self.record_batch(event.name, "resolved", event.duration_ms, event.timestamp)

    def fetch_failed(self, event: BatchFetchFailed) -> None:
        self.record_batch(event.name, "failed", event.duration_ms, event.timestamp)
        self.record_error(event.name, event.error_type or "Exception")

    # ------------------------------------------------------------------
    # Recording methods
    # ------------------------------------------------------------------

    def record_batch(
        self,
        batcher: str,
        outcome: str,
        duration_ms: float,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Record a completed batch.

        Args:
            batcher: Batcher name.
            outcome: ``resolved`` or ``failed``.
            duration_ms: Fetcher duration in milliseconds.
            timestamp: Completion time; defaults to now.

        Raises:
            ObservabilityError: If recording fails unexpectedly.
        """
        if not self._config.enabled:
            return

        try:
            key = f'batcher="{batcher}",outcome="{outcome}"'
            self._batches_total[key] += 1
            self._latency_observations.append(
                _MetricPoint(
                    timestamp=timestamp or datetime.now(timezone.utc),
                    value=float(duration_ms),
                    labels={"batcher": batcher, "outcome": outcome},
                )
            )
        except Exception as exc:
            raise ObservabilityError(
                f"Failed to record batch event: {exc}"
            ) from exc

        logger.debug(
            "Batch event recorded",
            extra={"batcher": batcher, "outcome": outcome, "duration_ms": duration_ms},
        )

    def record_error(self, batcher: str, error_type: str) -> None:
        """Record a fetcher error.

        Args:
            batcher: Batcher name.
            error_type: Exception class name.
        """
        if not self._config.enabled:
            return

        key = f'batcher="{batcher}",error_type="{error_type}"'
        self._errors_total[key] += 1

        logger.debug(
            "Error recorded",
            extra={"batcher": batcher, "error_type": error_type},
        )

    # ------------------------------------------------------------------
    # Prometheus exposition
    # ------------------------------------------------------------------

    def get_prometheus_metrics(self) -> str:
        """Return all metrics in Prometheus text exposition format.

        Returns:
            Multi-line string suitable for ``/metrics`` endpoint scraping.
        """
        lines: List[str] = []

        lines.append("# HELP batchfetch_batches_total Batches executed by outcome")
        lines.append("# TYPE batchfetch_batches_total counter")
        for labels, val in sorted(self._batches_total.items()):
            lines.append(f"batchfetch_batches_total{{{labels}}} {val}")

        lines.append("# HELP batchfetch_queries_total Fetch calls queued")
        lines.append("# TYPE batchfetch_queries_total counter")
        for labels, val in sorted(self._queries_total.items()):
            lines.append(f"batchfetch_queries_total{{{labels}}} {val}")

        lines.append("# HELP batchfetch_errors_total Fetcher errors")
        lines.append("# TYPE batchfetch_errors_total counter")
        for labels, val in sorted(self._errors_total.items()):
            lines.append(f"batchfetch_errors_total{{{labels}}} {val}")

        lines.extend(
            self._format_histogram(
                "batchfetch_batch_size",
                "Queries per executed batch",
                self._batch_size_observations,
                self._BATCH_SIZE_BUCKETS,
            )
        )
        lines.extend(
            self._format_histogram(
                "batchfetch_fetch_latency_ms",
                "Fetcher latency distribution in ms",
                self._latency_observations,
                self._LATENCY_BUCKETS,
            )
        )
        lines.extend(
            self._format_histogram(
                "batchfetch_scheduled_delay_ms",
                "Delay returned by the scheduler in ms",
                self._delay_observations,
                self._DELAY_BUCKETS,
            )
        )

        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Windowed summary
    # ------------------------------------------------------------------

    def get_summary(self, window_minutes: int = 60) -> Dict[str, Any]:
        """Return an aggregated summary over the given time window.

        Args:
            window_minutes: How many minutes of recent data to include.

        Returns:
            Dictionary with ``total_batches``, ``failed_batches``,
            ``avg_batch_size``, ``avg_latency_ms``, ``error_count``, and
            ``batches_by_batcher``.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=window_minutes)

        completed = [
            o for o in self._latency_observations if o.timestamp >= cutoff
        ]
        sizes = [
            o.value for o in self._batch_size_observations if o.timestamp >= cutoff
        ]

        failed = sum(1 for o in completed if o.labels.get("outcome") == "failed")
        avg_latency = (
            sum(o.value for o in completed) / len(completed) if completed else 0.0
        )
        avg_size = sum(sizes) / len(sizes) if sizes else 0.0

        by_batcher: Dict[str, int] = defaultdict(int)
        for obs in completed:
            by_batcher[obs.labels.get("batcher", "unknown")] += 1

        return {
            "window_minutes": window_minutes,
            "total_batches": len(completed),
            "failed_batches": failed,
            "avg_batch_size": round(avg_size, 2),
            "avg_latency_ms": round(avg_latency, 2),
            "error_count": int(sum(self._errors_total.values())),
            "batches_by_batcher": dict(by_batcher),
        }

    def get_total_batches(self) -> int:
        """Return the number of completed batches across all batchers."""
        return int(sum(self._batches_total.values()))

    def get_error_counts(self) -> Dict[str, float]:
        """Return error counts keyed by label string."""
        return dict(self._errors_total)

    # ------------------------------------------------------------------
    # Pruning
    # ------------------------------------------------------------------

    def prune(self) -> int:
        """Remove data points older than ``retention_hours``.

        Returns:
            Number of data points removed.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(
            hours=self._config.retention_hours
        )
        removed = 0

        for attr in (
            "_batch_size_observations",
            "_latency_observations",
            "_delay_observations",
        ):
            observations: List[_MetricPoint] = getattr(self, attr)
            kept = [o for o in observations if o.timestamp >= cutoff]
            removed += len(observations) - len(kept)
            setattr(self, attr, kept)

        if removed > 0:
            logger.info(
                "Pruned old metric points",
                extra={"removed": removed, "retention_hours": self._config.retention_hours},
            )
        return removed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format_histogram(
        name: str,
        help_text: str,
        observations: List[_MetricPoint],
        buckets: List[float],
    ) -> List[str]:
        """Format observations as a Prometheus histogram.

        Args:
            name: Metric name.
            help_text: HELP annotation text.
            observations: Raw observed values.
            buckets: Histogram bucket boundaries.

        Returns:
            Lines of Prometheus text exposition.
        """
        lines: List[str] = []
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} histogram")

        if not observations:
            return lines

        values = [o.value for o in observations]
        total = sum(values)
        count = len(values)

        for bound in buckets:
            bucket_count = sum(1 for v in values if v <= bound)
            lines.append(f'{name}_bucket{{le="{bound}"}} {bucket_count}')
        lines.append(f'{name}_bucket{{le="+Inf"}} {count}')
        lines.append(f"{name}_sum {total:.6f}")
        lines.append(f"{name}_count {count}")

        return lines
