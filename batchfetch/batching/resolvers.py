"""
Resolvers map a batch result back to the value owed to one query.

A resolver is any callable ``(results, query) -> value``.  Queries that
nothing in the result matches resolve to ``None``; no check is made
that every queued query was satisfied.
"""

from collections.abc import Mapping
from typing import Any, Callable, Optional, Sequence, Union

from batchfetch.exceptions import ConfigurationError

# Type alias for a correlation strategy
BatcherResolver = Callable[[Any, Any], Any]

_MISSING = object()


def _field_value(item: Any, field: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(field, _MISSING)
    return getattr(item, field, _MISSING)


def key_resolver(field: str) -> BatcherResolver:
    """Match the item whose ``field`` equals the query.

    Items may be mappings (``item[field]``) or plain objects
    (``item.field``).

    Args:
        field: Name of the key or attribute compared with the query.

    Returns:
        A resolver returning the first matching item, or ``None``.
    """

    def resolve(items: Sequence[Any], query: Any) -> Any:
        for item in items:
            if _field_value(item, field) == query:
                return item
        return None

    return resolve


def indexed_resolver() -> BatcherResolver:
    """Look the query up directly in a mapping result.

    For fetchers returning ``{query: item}`` instead of a list.
    """

    def resolve(index: Mapping, query: Any) -> Any:
        return index.get(query)

    return resolve


def predicate_resolver(predicate: Callable[[Any, Any], bool]) -> BatcherResolver:
    """Return the first item for which ``predicate(item, query)`` holds.

    Args:
        predicate: Item-level equality check.
    """

    def resolve(items: Sequence[Any], query: Any) -> Any:
        for item in items:
            if predicate(item, query):
                return item
        return None

    return resolve


def as_resolver(spec: Optional[Union[str, BatcherResolver]]) -> BatcherResolver:
    """Normalise a configured resolver.

    Args:
        spec: A field name (becomes :func:`key_resolver`) or a callable
            ``(results, query) -> value`` used as is.

    Returns:
        A callable resolver.

    Raises:
        ConfigurationError: If ``spec`` is neither a string nor callable.
    """
    if isinstance(spec, str):
        if not spec:
            raise ConfigurationError("Resolver field name must not be empty")
        return key_resolver(spec)
    if callable(spec):
        return spec
    raise ConfigurationError(
        f"Resolver must be a field name or a callable, got {type(spec).__name__}"
    )
