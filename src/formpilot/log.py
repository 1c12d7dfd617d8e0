"""
FormPilot Logging Setup

Library modules only create loggers (logging.getLogger(__name__)).
Applications and the CLI call configure_logging() once to attach a
handler to the "formpilot" logger, either plain text or one JSON object
per line.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

ROOT_LOGGER = "formpilot"

# LogRecord attributes copied into JSON output when set via `extra=`
_EXTRA_FIELDS = ("form_id", "pack_hash_short", "field_id", "target_path", "duration_ms")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: Logging level name
        json_format: Emit JSON lines instead of plain text

    Returns:
        The configured "formpilot" logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for existing in list(logger.handlers):
        if getattr(existing, "_formpilot_handler", False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler()
    handler._formpilot_handler = True
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    logger.addHandler(handler)
    return logger
