# === NAVMAP v1 ===
# {
#   "module": "HttpGet.logging_config",
#   "purpose": "Structured logging setup with JSON files and secret masking",
#   "sections": [
#     {
#       "id": "mask-sensitive-data",
#       "name": "mask_sensitive_data",
#       "anchor": "function-mask-sensitive-data",
#       "kind": "function"
#     },
#     {
#       "id": "jsonformatter",
#       "name": "JSONFormatter",
#       "anchor": "class-jsonformatter",
#       "kind": "class"
#     },
#     {
#       "id": "setup-logging",
#       "name": "setup_logging",
#       "anchor": "function-setup-logging",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Structured Logging Utilities

Library modules only ever call ``logging.getLogger(__name__)`` and pass
structured context through ``extra``. Applications (and the CLI) call
:func:`setup_logging` once to attach a console handler and a rotating
JSON-lines file handler to the ``HttpGet`` logger, with credentials masked.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

import platformdirs

from HttpGet.settings import LoggingConfiguration

_SENSITIVE_KEYS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "auth",
}

#: ``LogRecord`` attributes that are not structured ``extra`` fields
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Nested mappings (header dictionaries) are masked recursively.

    Examples:
        >>> mask_sensitive_data({"authorization": "Basic abc", "status": 200})
        {'authorization': '***masked***', 'status': 200}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if str(key).lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        else:
            masked[key] = value
    return masked


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record, ``extra`` fields included."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        log_obj: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_obj[key] = value
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(log_obj), default=str)


def default_log_dir() -> Path:
    """Return ``HTTPGET_LOG_DIR`` or the platform log directory."""

    override = os.environ.get("HTTPGET_LOG_DIR")
    if override:
        return Path(override)
    return Path(platformdirs.user_log_dir("http-get"))


def setup_logging(
    config: LoggingConfiguration,
    log_dir: Optional[Path] = None,
    *,
    console: bool = True,
) -> logging.Logger:
    """Configure structured logging handlers for the ``HttpGet`` logger.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        config: Logging configuration containing level and rotation limits.
        log_dir: Optional directory override for the JSON log file.
        console: Attach a plain-text stderr handler as well.

    Returns:
        Configured package logger.
    """
    log_dir = log_dir or config.log_dir or default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("HttpGet")
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_httpget_managed", False):
            logger.removeHandler(handler)
            handler.close()

    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        stream_handler._httpget_managed = True  # type: ignore[attr-defined]
        logger.addHandler(stream_handler)

    file_handler = RotatingFileHandler(
        log_dir / "http-get.jsonl",
        maxBytes=int(config.max_log_size_mb * 1024 * 1024),
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONFormatter())
    file_handler._httpget_managed = True  # type: ignore[attr-defined]
    logger.addHandler(file_handler)

    logger.propagate = True
    return logger


__all__ = ["setup_logging", "mask_sensitive_data", "JSONFormatter", "default_log_dir"]
