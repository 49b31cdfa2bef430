# app/core/logging.py
"""
Central logging configuration.

Logs go to stdout so they show up in the platform log stream. Level and
format come from environment variables, so this works before Settings
can be loaded (e.g. when configuration itself is broken).
"""

import json
import logging
import logging.config
import os
import sys
from datetime import datetime, timezone
from typing import Any


def _env_bool(name: str, *, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        extras = record.__dict__
        for key in ("method", "path", "status_code", "error_type", "principal_id", "bucket"):
            if key in extras:
                payload[key] = extras[key]

        return json.dumps(payload, ensure_ascii=False)


def configure_logging() -> None:
    """
    Configure stdlib logging for the app and uvicorn.

    Env vars:
      - LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
      - LOG_JSON: true/false (default: false)
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    formatter_name = "json" if _env_bool("LOG_JSON", default=False) else "text"

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "text": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
            "json": {
                "()": "app.core.logging.JsonFormatter",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": formatter_name,
                "stream": sys.stdout,
            }
        },
        "root": {"handlers": ["console"], "level": level},
        "loggers": {
            "uvicorn": {"level": level, "propagate": True},
            "uvicorn.error": {"level": level, "propagate": True},
            "uvicorn.access": {"level": "INFO", "propagate": True},
            # supabase-py talks through httpx; its request lines are noise.
            "httpx": {"level": os.getenv("HTTPX_LOG_LEVEL", "WARNING"), "propagate": True},
            "hpack": {"level": "WARNING", "propagate": True},
        },
    }

    logging.config.dictConfig(config)
