"""
Logging setup for batchfetch entry points.

``logging.format`` in settings selects plain text or one JSON object per
line.  Fields passed through ``extra={...}`` are kept in the JSON output.
"""

import json
import logging
from typing import Any, Dict, Optional

from batchfetch.config import LoggingSettings
from batchfetch.exceptions import ConfigurationError

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS:
                continue
            try:
                json.dumps(value)
                data[key] = value
            except (TypeError, ValueError):
                data[key] = str(value)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def build_formatter(fmt: str) -> logging.Formatter:
    """Return the formatter for a ``logging.format`` value.

    Raises:
        ConfigurationError: If ``fmt`` is neither ``text`` nor ``json``.
    """
    kind = fmt.strip().lower()
    if kind == "text":
        return logging.Formatter(TEXT_FORMAT, DATE_FORMAT)
    if kind == "json":
        return JsonFormatter()
    raise ConfigurationError(
        f"Unknown logging format {fmt!r}; expected 'text' or 'json'"
    )


def configure_logging(settings: LoggingSettings, level: Optional[str] = None) -> None:
    """Install a root handler using the configured format and level.

    Args:
        settings: The ``logging`` settings section.
        level: Overrides ``settings.level`` when given.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter(settings.format))
    logging.basicConfig(
        level=(level or settings.level).upper(),
        handlers=[handler],
        force=True,
    )
