"""
batchfetch exception hierarchy.

All custom exceptions inherit from BatchFetchException so callers can
catch a single base type when they want a broad safety net.  Errors
raised by a caller-supplied fetcher are never wrapped: they reach every
waiting caller unchanged.
"""


class BatchFetchException(Exception):
    """Base exception for all batchfetch errors."""


class ConfigurationError(BatchFetchException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


class DeferredStateError(BatchFetchException):
    """Raised when a deferred result is settled more than once."""


class ObservabilityError(BatchFetchException):
    """Raised when recording a metric fails."""
