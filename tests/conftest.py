"""Shared fixtures for batchfetch tests."""

import pytest

from batchfetch.config import reset_settings


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Keep each test independent of env overrides and cached settings."""
    for key in ("SCHEDULER", "DELAY_MS", "MAX_WAIT_MS", "NAME_PREFIX"):
        monkeypatch.delenv(f"BATCHFETCH_BATCHER_{key}", raising=False)
    for key in ("LOG_EVENTS", "MAX_EVENTS"):
        monkeypatch.delenv(f"BATCHFETCH_OBSERVABILITY_{key}", raising=False)
    monkeypatch.delenv("BATCHFETCH_LOGGING_FORMAT", raising=False)
    reset_settings()
    yield
    reset_settings()
