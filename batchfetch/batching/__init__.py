"""Query batching: deferred results, timing policies, resolvers, and the batcher."""

from batchfetch.batching.deferred import Deferred
from batchfetch.batching.engine import Batcher, BatcherConfig, create
from batchfetch.batching.resolvers import (
    as_resolver,
    indexed_resolver,
    key_resolver,
    predicate_resolver,
)
from batchfetch.batching.scheduler import (
    buffer_scheduler,
    capped_buffer_scheduler,
    scheduler_from_settings,
    window_scheduler,
)

__all__ = [
    "Batcher",
    "BatcherConfig",
    "Deferred",
    "create",
    "as_resolver",
    "indexed_resolver",
    "key_resolver",
    "predicate_resolver",
    "buffer_scheduler",
    "capped_buffer_scheduler",
    "scheduler_from_settings",
    "window_scheduler",
]
