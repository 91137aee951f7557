"""Logging configuration for the context engine."""

from __future__ import annotations

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "notecontext.index.audit"
AUDIT_FILENAME = "index_audit.log"
AUDIT_MAX_BYTES = 5 * 1024 * 1024
AUDIT_BACKUP_COUNT = 3

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class MinimalJSONFormatter(logging.Formatter):
    """One JSON object per record.

    Dict messages (the telemetry events and audit entries) are merged into the
    object; other messages go under ``message``. Values JSON cannot encode are
    rendered with ``str``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
        }

        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            message = record.getMessage()
            if message:
                payload["message"] = message

        if record.exc_info and "exc" not in payload:
            payload["exc_info"] = self.formatException(record.exc_info)

        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRIBUTES and not key.startswith("_")
        )
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(log_dir: str | Path | None = None) -> None:
    """JSON logs to stderr; audit entries to a rotating ``index_audit.log``.

    ``NOTECONTEXT_LOG_DIR`` (default ``logs``) sets the audit directory and
    ``LOG_LEVEL`` the root level.
    """

    directory = Path(log_dir or os.getenv("NOTECONTEXT_LOG_DIR", "logs"))
    directory.mkdir(parents=True, exist_ok=True)
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": MinimalJSONFormatter}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
                "index_audit": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": str(directory / AUDIT_FILENAME),
                    "maxBytes": AUDIT_MAX_BYTES,
                    "backupCount": AUDIT_BACKUP_COUNT,
                    "encoding": "utf-8",
                    "formatter": "json",
                },
            },
            "root": {"level": level, "handlers": ["console"]},
            "loggers": {
                AUDIT_LOGGER_NAME: {
                    "level": "INFO",
                    "handlers": ["index_audit"],
                    "propagate": False,
                }
            },
        }
    )


__all__ = ["AUDIT_LOGGER_NAME", "MinimalJSONFormatter", "configure_logging"]
