"""
Timing policies deciding when a pending batch fires.

A scheduler is a pure function ``(start_ms, latest_ms) -> delay_ms``.
``start_ms`` is when the current batch received its first query and
``latest_ms`` when it received its most recent one.  The batcher calls
the scheduler on every fetch and re-arms its single timer with the
returned delay, so the value is always the remaining wait from *now*.
"""

import logging
from typing import Callable

from batchfetch.config import BatcherSettings
from batchfetch.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Type alias for a timing policy
BatcherScheduler = Callable[[float, float], float]


def _check_ms(name: str, value: float) -> None:
    if value < 0:
        raise ConfigurationError(f"{name} must be >= 0, got {value}")


def window_scheduler(ms: float) -> BatcherScheduler:
    """Batch every fetch made within ``ms`` of the first one.

    Args:
        ms: Window length in milliseconds.

    Returns:
        A scheduler firing ``ms`` after the first query of each batch.

    Raises:
        ConfigurationError: If ``ms`` is negative.
    """
    _check_ms("ms", ms)

    def schedule(start: float, latest: float) -> float:
        spent = latest - start
        return ms - spent

    return schedule


def buffer_scheduler(ms: float) -> BatcherScheduler:
    """Give every queued fetch another ``ms`` of buffer time.

    The batch fires ``ms`` after the most recent fetch, so a steady
    stream of fetches keeps deferring it.

    Args:
        ms: Buffer length in milliseconds.

    Raises:
        ConfigurationError: If ``ms`` is negative.
    """
    _check_ms("ms", ms)

    def schedule(start: float, latest: float) -> float:
        return ms

    return schedule


def capped_buffer_scheduler(ms: float, max_wait_ms: float) -> BatcherScheduler:
    """Sliding buffer that never holds a batch longer than ``max_wait_ms``.

    Behaves like :func:`buffer_scheduler` until the batch has been open
    for ``max_wait_ms``, after which it fires regardless of new fetches.

    Args:
        ms: Buffer length in milliseconds.
        max_wait_ms: Upper bound on the time since the first query.

    Raises:
        ConfigurationError: If either value is negative.
    """
    _check_ms("ms", ms)
    _check_ms("max_wait_ms", max_wait_ms)

    def schedule(start: float, latest: float) -> float:
        remaining = max_wait_ms - (latest - start)
        return max(0.0, min(ms, remaining))

    return schedule


def scheduler_from_settings(settings: BatcherSettings) -> BatcherScheduler:
    """Build the default scheduler described by ``settings``.

    Args:
        settings: The ``batcher`` settings section.

    Returns:
        The configured timing policy.

    Raises:
        ConfigurationError: If the scheduler kind is unknown.
    """
    kind = settings.scheduler.lower()
    if kind == "window":
        return window_scheduler(settings.delay_ms)
    if kind == "buffer":
        return buffer_scheduler(settings.delay_ms)
    if kind == "capped":
        return capped_buffer_scheduler(settings.delay_ms, settings.max_wait_ms)

    logger.error(
        "Unknown scheduler kind in settings",
        extra={"scheduler": settings.scheduler},
    )
    raise ConfigurationError(
        f"Unknown scheduler '{settings.scheduler}'. "
        "Expected one of: window, buffer, capped"
    )
