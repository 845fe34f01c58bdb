"""Structured logging for the context store, built on structlog.

Every module logs through ``get_logger(__name__)`` with a dotted event name
and keyword context. Output is one JSON object per line on stdout and,
optionally, in a daily log file. Before rendering, each event is scrubbed:
values under credential-like keys are replaced and passwords embedded in
connection URLs (``mysql+pymysql://user:pw@host``) are masked wherever they
appear, including inside driver error messages.

Environment:
- CTX_SQL_LOG_LEVEL (through BackendSettings) or LOG_LEVEL. Default: INFO
- LOG_TO_FILE: 1 / true / yes writes logs/context-store-YYYYMMDD.log as well
- LOG_FILE_DIR: directory of the log files. Default: logs/

Usage:
    >>> from context_store.utils.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("backend.table_created", destination="sensors", table="temp_readings")
"""

import logging
import os
import re
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import structlog
from structlog.types import EventDict, Processor

from context_store.config import get_settings

SENSITIVE_KEY = re.compile(r"password|passwd|secret|token|api_key", re.IGNORECASE)
# scheme://user:password@  ->  scheme://user:***@
URL_CREDENTIALS = re.compile(r"([a-z][a-z0-9+.-]*://[^:/@\s]+:)[^@\s]+@", re.IGNORECASE)

REDACTED_VALUE = "[REDACTED]"
MASKED_PASSWORD = "***"

_configured = False


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        return URL_CREDENTIALS.sub(rf"\g<1>{MASKED_PASSWORD}@", value)
    if isinstance(value, dict):
        return sanitize_for_logging(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(item) for item in value)
    return value


def sanitize_for_logging(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``data`` that is safe to log.

    Example:
        >>> sanitize_for_logging({"password": "pw", "url": "mysql://ctx:pw@db/sensors"})
        {'password': '[REDACTED]', 'url': 'mysql://ctx:***@db/sensors'}
    """
    return {
        key: REDACTED_VALUE if SENSITIVE_KEY.search(str(key)) else _scrub(value)
        for key, value in data.items()
    }


def sanitization_processor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> MutableMapping[str, Any]:
    """Structlog processor applying sanitize_for_logging to the event."""
    return sanitize_for_logging(dict(event_dict))


def backend_error_processor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Expand backend errors passed as ``error=`` into their structured form."""
    error = event_dict.get("error")
    to_dict = getattr(error, "to_dict", None)
    if isinstance(error, Exception) and callable(to_dict):
        event_dict["error"] = to_dict()
    return event_dict


def _resolve_level(level: Optional[str]) -> int:
    if level is None:
        try:
            level = get_settings().log_level
        except Exception:
            # Broken configuration must not take logging down with it
            level = os.getenv("LOG_LEVEL", "INFO")
    return getattr(logging, level.upper(), logging.INFO)


def _handlers(level: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if os.getenv("LOG_TO_FILE", "").lower() in ("1", "true", "yes"):
        log_dir = Path(os.getenv("LOG_FILE_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        filename = log_dir / f"context-store-{datetime.now():%Y%m%d}.log"
        handlers.append(
            TimedRotatingFileHandler(
                filename=str(filename),
                when="midnight",
                backupCount=30,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setLevel(level)
    return handlers


def configure_logging(level: Optional[str] = None, force: bool = False) -> None:
    """Install the stdlib handlers and the structlog pipeline.

    Runs once per process unless ``force`` is set.

    Args:
        level: Level name; the configured log_level when omitted
        force: Reconfigure even if logging is already set up
    """
    global _configured
    if _configured and not force:
        return

    numeric_level = _resolve_level(level)
    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=_handlers(numeric_level),
        force=force,
    )

    processors: List[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        backend_error_processor,
        sanitization_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(default=str),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


configure_logging()


def get_logger(name: str) -> Any:
    """Return a structlog BoundLogger named after the calling module."""
    return structlog.get_logger(name)
