"""
batchfetch -- coalesce concurrent fetches into batched calls.

Typical use::

    users = create(fetcher=fetch_users_by_ids, resolver="id")
    alice, bob = await asyncio.gather(users.fetch(1), users.fetch(2))
"""

from batchfetch.batching import (
    Batcher,
    BatcherConfig,
    Deferred,
    buffer_scheduler,
    capped_buffer_scheduler,
    create,
    indexed_resolver,
    key_resolver,
    predicate_resolver,
    window_scheduler,
)
from batchfetch.exceptions import (
    BatchFetchException,
    ConfigurationError,
    DeferredStateError,
    ObservabilityError,
)
from batchfetch.observability import BatcherObserver

__version__ = "0.1.0"

__all__ = [
    "Batcher",
    "BatcherConfig",
    "BatcherObserver",
    "Deferred",
    "create",
    "buffer_scheduler",
    "capped_buffer_scheduler",
    "window_scheduler",
    "indexed_resolver",
    "key_resolver",
    "predicate_resolver",
    "BatchFetchException",
    "ConfigurationError",
    "DeferredStateError",
    "ObservabilityError",
]
