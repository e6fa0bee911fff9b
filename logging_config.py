from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Iterable, Sequence

from settings import get_settings

# Keys must not collide with LogRecord attributes (``filename``, ``module``,
# ``name`` ...); ``Logger.makeRecord`` rejects those.
CONTEXT_KEYS = (
    "capture_file",
    "captures_root",
    "zone",
    "moisture",
    "status",
    "reason",
    "url",
    "health",
    "confidence",
    "elapsed_ms",
)

# httpx logs every request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore")

_configured = False


class ContextualFormatter(logging.Formatter):
    """Append known ``extra=`` context to each line as ``key=value`` pairs."""

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._context_keys: Sequence[str] = tuple(context_keys or CONTEXT_KEYS)

    def _context(self, record: logging.LogRecord) -> str:
        pairs = []
        for key in self._context_keys:
            value = record.__dict__.get(key)
            if value is not None:
                pairs.append(f"{key}={value}")
        return " ".join(pairs)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = self._context(record)
        return f"{message} | {context}" if context else message


def configure_logging(level: str | int | None = None) -> None:
    """Install the stderr handler once per process.

    ``level`` overrides ``LOG_LEVEL``; the relay passes nothing, the dashboard
    passes its ``--log-level`` option.
    """
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": "%(asctime)sZ %(levelname)-7s %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "context_keys": list(CONTEXT_KEYS),
                }
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "contextual",
                    "stream": "ext://sys.stderr",
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in _CHATTY_LOGGERS},
            "root": {"handlers": ["stderr"], "level": log_level},
        }
    )

    _configured = True
