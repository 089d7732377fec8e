"""
Batch orchestrator for batchfetch.

Collects individual ``fetch(query)`` calls made on one event loop into a
pending batch, fires the batch when the timing policy says so, and hands
every caller exactly its own slice of the shared result.

All state transitions run on the event loop thread (the caller's
``fetch`` or the timer callback), so no locking is needed.  A fired
batch is detached from the batcher before its fetcher runs: new fetches
immediately start a fresh, independent batch.
"""

import asyncio
import inspect
import logging
import secrets
from typing import Any, Callable, Dict, Hashable, List, Optional, Set, Tuple, Type, Union

from pydantic import BaseModel, ValidationError, field_validator

from batchfetch.batching.deferred import Deferred
from batchfetch.batching.resolvers import BatcherResolver, as_resolver
from batchfetch.batching.scheduler import BatcherScheduler, scheduler_from_settings
from batchfetch.config import get_settings
from batchfetch.exceptions import ConfigurationError
from batchfetch.observability.events import (
    BatchDataReceived,
    BatcherCreated,
    BatcherEvent,
    BatchFetchFailed,
    BatchFetchStarted,
    QueryQueued,
)
from batchfetch.observability.observer import (
    BatcherObserver,
    LoggingObserver,
    MultiObserver,
    notify,
)

logger = logging.getLogger(__name__)

# Type alias for the caller-supplied batch fetch function
BatchFetcher = Callable[[List[Any]], Any]


class BatcherConfig(BaseModel):
    """Configuration for a :class:`Batcher`.

    Attributes:
        fetcher: Called with the list of queued queries; returns the batch
            result directly or as an awaitable.
        resolver: Field name matched against each query, or a callable
            ``(results, query) -> value``.
        scheduler: Timing policy.  ``None`` uses the policy configured in
            settings (a 10 ms window by default).
        name: Display name used in logs and lifecycle events.
        key: Dedup key for a query.  ``None`` uses the query itself when
            hashable and its identity otherwise.
        observer: Receives lifecycle events.
    """

    fetcher: BatchFetcher
    resolver: Union[str, BatcherResolver]
    scheduler: Optional[BatcherScheduler] = None
    name: Optional[str] = None
    key: Optional[Callable[[Any], Hashable]] = None
    observer: Optional[BatcherObserver] = None

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("name must not be blank")
        return value


class _IdentityKey:
    """Dedup key comparing an unhashable query by identity."""

    __slots__ = ("_obj",)

    def __init__(self, obj: Any) -> None:
        self._obj = obj

    def __hash__(self) -> int:
        return id(self._obj)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _IdentityKey) and other._obj is self._obj


def _default_key(query: Any) -> Hashable:
    try:
        hash(query)
    except TypeError:
        return _IdentityKey(query)
    return query


class Batcher:
    """Coalesce concurrent fetches into batched fetcher calls.

    Args:
        config: Batcher configuration.

    Raises:
        ConfigurationError: If the resolver or default scheduler is invalid.
    """

    def __init__(self, config: BatcherConfig) -> None:
        _s = get_settings()
        settings = _s.batcher

        self._config = config
        self._fetcher = config.fetcher
        self._resolver: BatcherResolver = as_resolver(config.resolver)
        self._scheduler: BatcherScheduler = (
            config.scheduler or scheduler_from_settings(settings)
        )
        self._key = config.key or _default_key
        self._observer: Optional[BatcherObserver] = config.observer
        if _s.observability.log_events:
            if self._observer is None:
                self._observer = LoggingObserver()
            else:
                self._observer = MultiObserver(self._observer, LoggingObserver())
        self._name = config.name or f"{settings.name_prefix}:{secrets.token_hex(6)}"

        # Working state of the batch currently accumulating
        self._seq: int = 0
        self._batch: Dict[Hashable, Any] = {}
        self._deferred: Deferred = Deferred()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._start: Optional[float] = None
        self._latest: Optional[float] = None

        # Detached batches whose fetcher is still running
        self._inflight: Set[asyncio.Task] = set()

        # Counters
        self._batches_executed: int = 0
        self._queries_processed: int = 0
        self._batch_errors: int = 0

        self._emit(
            BatcherCreated,
            seq=self._seq,
            scheduler="custom" if config.scheduler else settings.scheduler,
        )
        logger.debug(
            "Batcher initialised",
            extra={"batcher": self._name, "custom_scheduler": bool(config.scheduler)},
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def seq(self) -> int:
        """Sequence number of the batch currently accumulating."""
        return self._seq

    @property
    def pending(self) -> Tuple[Any, ...]:
        """Queries waiting in the current batch, in insertion order."""
        return tuple(self._batch.values())

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def fetch(self, query: Any) -> "asyncio.Future[Any]":
        """Queue ``query`` in the current batch.

        The query is added immediately; the returned future settles once
        the batch it joined has been fetched.

        Args:
            query: The query to fetch.  Queries with an equal dedup key
                share one slot in the outgoing batch.

        Returns:
            A future resolving to the resolver's value for ``query``, or
            failing with the fetcher's exception.

        Raises:
            RuntimeError: If called without a running event loop.
            Exception: Whatever the key function or scheduler raises.  The
                pending batch and its timer are left untouched.
        """
        loop = asyncio.get_running_loop()
        key = self._key(query)
        now = loop.time() * 1000.0
        start = now if self._start is None else self._start

        # Nothing is committed until the scheduler has produced a delay.
        scheduled = float(self._scheduler(start, now))

        self._start = start
        self._latest = now
        if key not in self._batch:
            self._batch[key] = query

        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(max(0.0, scheduled) / 1000.0, self._execute)

        self._emit(
            QueryQueued,
            seq=self._seq,
            query=query,
            batch=list(self._batch.values()),
            scheduled_ms=scheduled,
            start_ms=start,
            latest_ms=now,
        )

        return self._deferred.then(lambda result: self._resolver(result, query))

    def flush(self) -> None:
        """Fire the pending batch now instead of waiting for its timer.

        Does nothing when no batch is pending.
        """
        if not self._batch:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._execute()

    def stats(self) -> Dict[str, Any]:
        """Return batcher statistics.

        Returns:
            Dict with the name, current sequence number, pending and
            in-flight counts, and counters for batches executed, queries
            processed, and batch errors.
        """
        return {
            "name": self._name,
            "seq": self._seq,
            "pending": len(self._batch),
            "in_flight": len(self._inflight),
            "batches_executed": self._batches_executed,
            "queries_processed": self._queries_processed,
            "batch_errors": self._batch_errors,
        }

    # ------------------------------------------------------------------
    # Batch execution
    # ------------------------------------------------------------------

    def _execute(self) -> None:
        """Detach the current batch and run the fetcher for it."""
        queries = list(self._batch.values())
        deferred = self._deferred
        seq = self._seq

        self._batch = {}
        self._deferred = Deferred()
        self._timer = None
        self._start = None
        self._latest = None
        self._seq += 1

        loop = asyncio.get_running_loop()
        started = loop.time()

        self._emit(BatchFetchStarted, seq=seq, batch=queries)
        logger.debug(
            "Executing batch",
            extra={"batcher": self._name, "seq": seq, "batch_size": len(queries)},
        )

        try:
            result = self._fetcher(queries)
        except Exception as exc:
            self._fail(deferred, seq, exc, started)
            return

        if not inspect.isawaitable(result):
            self._succeed(deferred, seq, queries, result, started)
            return

        task = asyncio.ensure_future(
            self._await_result(result, deferred, seq, queries, started)
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _await_result(
        self,
        pending: Any,
        deferred: Deferred,
        seq: int,
        queries: List[Any],
        started: float,
    ) -> None:
        try:
            result = await pending
        except asyncio.CancelledError as exc:
            # Callers of the batch are cancelled too, then the task ends.
            self._fail(deferred, seq, exc, started)
            raise
        except Exception as exc:
            self._fail(deferred, seq, exc, started)
            return
        self._succeed(deferred, seq, queries, result, started)

    def _succeed(
        self,
        deferred: Deferred,
        seq: int,
        queries: List[Any],
        result: Any,
        started: float,
    ) -> None:
        duration_ms = (asyncio.get_running_loop().time() - started) * 1000.0
        self._batches_executed += 1
        self._queries_processed += len(queries)

        self._emit(BatchDataReceived, seq=seq, data=result, duration_ms=duration_ms)
        logger.debug(
            "Batch resolved",
            extra={
                "batcher": self._name,
                "seq": seq,
                "batch_size": len(queries),
                "duration_ms": round(duration_ms, 3),
            },
        )
        deferred.resolve(result)

    def _fail(
        self,
        deferred: Deferred,
        seq: int,
        error: BaseException,
        started: float,
    ) -> None:
        duration_ms = (asyncio.get_running_loop().time() - started) * 1000.0
        self._batch_errors += 1

        self._emit(
            BatchFetchFailed,
            seq=seq,
            error=error,
            error_type=type(error).__name__,
            message=str(error),
            duration_ms=duration_ms,
        )
        logger.error(
            "Batch fetch failed",
            extra={
                "batcher": self._name,
                "seq": seq,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=error,
        )
        if isinstance(error, asyncio.CancelledError):
            deferred.cancel()
        else:
            deferred.reject(error)

    def _emit(self, event_type: Type[BatcherEvent], **fields: Any) -> None:
        # Events are only built when someone is listening.
        if self._observer is None:
            return
        try:
            event = event_type(name=self._name, **fields)
        except ValidationError as exc:
            logger.warning(
                "Could not build lifecycle event; event dropped",
                extra={
                    "batcher": self._name,
                    "event": event_type.__name__,
                    "error": str(exc),
                },
            )
            return
        notify(self._observer, event)


def create(
    fetcher: BatchFetcher,
    resolver: Union[str, BatcherResolver],
    scheduler: Optional[BatcherScheduler] = None,
    name: Optional[str] = None,
    key: Optional[Callable[[Any], Hashable]] = None,
    observer: Optional[BatcherObserver] = None,
) -> Batcher:
    """Create a batcher for one kind of query.

    Every ``fetch`` made within the scheduled window is coalesced into a
    single ``fetcher`` call.

    Args:
        fetcher: Batch fetch function, sync or async.
        resolver: Field name or ``(results, query) -> value`` callable.
        scheduler: Timing policy; defaults to the configured one.
        name: Display name for logs and lifecycle events.
        key: Dedup key function for queries.
        observer: Lifecycle event observer.

    Returns:
        A ready :class:`Batcher`.

    Raises:
        ConfigurationError: If the configuration is invalid.
    """
    try:
        config = BatcherConfig(
            fetcher=fetcher,
            resolver=resolver,
            scheduler=scheduler,
            name=name,
            key=key,
            observer=observer,
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid batcher configuration: {exc}") from exc
    return Batcher(config)
