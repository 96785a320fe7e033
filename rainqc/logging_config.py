"""
Logging setup for the Rainfall QC command line.

Library modules only call ``logging.getLogger(__name__)``. The CLI calls
:func:`configure_logging` once, which:

* Picks the level from ``--log-level``, else ``RAINQC_LOG_LEVEL``, else WARNING.
* Writes to stderr so stdout stays free for the rich tables.
* Appends the ``station``, ``index`` and ``method`` extras to each line.
"""

from __future__ import annotations

import logging
import os
from logging.config import dictConfig

LOG_LEVEL_ENV = "RAINQC_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

CONTEXT_KEYS = ("station", "index", "method")


class ContextualFormatter(logging.Formatter):
    """Formatter that adds ``key=value`` pairs for the station context extras."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={getattr(record, key)}"
            for key in CONTEXT_KEYS
            if getattr(record, key, None) is not None
        ]
        return f"{message} | {' '.join(context)}" if context else message


def resolve_log_level(level: str | int | None = None) -> str | int:
    """Pick the log level: explicit argument, then environment, then default."""
    if level is not None:
        return level.upper() if isinstance(level, str) else level
    candidate = os.getenv(LOG_LEVEL_ENV, "").strip()
    return candidate.upper() if candidate else DEFAULT_LOG_LEVEL


def configure_logging(level: str | int | None = None) -> None:
    log_level = resolve_log_level(level)

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "rainqc.logging_config.ContextualFormatter",
                    "fmt": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                }
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "contextual",
                    "stream": "ext://sys.stderr",
                }
            },
            "loggers": {
                "rainqc": {"handlers": ["stderr"], "level": log_level},
            },
        }
    )
