from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "HJB"


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    logger = logging.getLogger(name)
    if name != ROOT_LOGGER and name.startswith(ROOT_LOGGER + "."):
        # Children inherit the root handlers and level.
        get_logger(ROOT_LOGGER)
        return logger
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def configure_logging(level: str = "info", file: str | None = None) -> logging.Logger:
    """Apply the ``logging`` config section to the HJB logger tree."""

    logger = get_logger(ROOT_LOGGER)
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logger.setLevel(resolved)

    if file:
        path = os.path.abspath(file)
        already = any(isinstance(h, logging.FileHandler) and h.baseFilename == path for h in logger.handlers)
        if not already:
            handler = logging.FileHandler(file, encoding="utf-8")
            handler.setFormatter(_JsonFormatter())
            logger.addHandler(handler)
    return logger


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # Support structured fields via logger.info("...", extra={"fields": {...}})
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)
