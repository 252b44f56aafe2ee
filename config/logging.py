"""
Site Publisher - Logging Configuration

Provides structured JSON logging with file rotation, credential censoring,
and per-deployment context. Designed for production debugging and monitoring.

Features:
    - JSON structured logging for easy parsing
    - Automatic file rotation by size
    - Credential censoring (bearer tokens, OAuth access tokens)
    - Contextual extras (site id, version id, channel)
    - Console and file handlers

Usage:
    from config.logging import setup_logging, get_logger

    # Initialize at application start
    setup_logging()

    # Get a logger for a module
    logger = get_logger(__name__)
    logger.info("Version created", extra={"version_id": "abc123"})
"""

import contextvars
import json
import logging
import logging.handlers
import re
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from config.settings import get_settings


# =============================================================================
# Sensitive Data Patterns
# =============================================================================

# Patterns to censor in log output
SENSITIVE_PATTERNS = [
    (re.compile(r'(Bearer\s+)[A-Za-z0-9._~+/-]+=*', re.I), r'\1[REDACTED]'),
    (re.compile(r'\bya29\.[A-Za-z0-9._-]+'), r'[REDACTED]'),  # Google OAuth access tokens
    (re.compile(r'(access_token["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.I), r'\1[REDACTED]'),
    (re.compile(r'(token["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.I), r'\1[REDACTED]'),
    (re.compile(r'(password["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.I), r'\1[REDACTED]'),
    (re.compile(r'(secret["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.I), r'\1[REDACTED]'),
]


def censor_sensitive_data(text: str) -> str:
    """
    Remove sensitive data from text using pattern matching.

    Args:
        text: Text that may contain sensitive data

    Returns:
        Text with sensitive data redacted
    """
    if not isinstance(text, str):
        return text

    result = text
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


# =============================================================================
# Formatters
# =============================================================================

# LogRecord attributes that are never reported as extras
RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed via extra= or added by ContextFilter."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in RESERVED_ATTRS and not key.startswith("_")
    }


def _utc(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line: timestamp, level, logger, message, extras,
    plus source location for warnings and the traceback for exceptions.
    Output is always censored.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _utc(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.levelno >= logging.WARNING:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        extras = record_extras(record)
        if extras:
            entry["extra"] = extras

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return censor_sensitive_data(json.dumps(entry, default=str, ensure_ascii=False))


class ConsoleFormatter(logging.Formatter):
    """
    Single-line text output for LOG_FORMAT=text.

    Format: TIMESTAMP | LEVEL | LOGGER | MESSAGE [key=value, ...]
    Levels are colored when stdout is a terminal.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    RESET = "\033[0m"

    def __init__(self) -> None:
        super().__init__()
        self.use_colors = sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_colors:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        name = record.name if len(record.name) <= 25 else "..." + record.name[-22:]
        extras = ", ".join(f"{k}={v}" for k, v in record_extras(record).items())

        output = (
            f"{_utc(record):%Y-%m-%d %H:%M:%S} | {level} | {name:25} | "
            f"{record.getMessage()}{f' [{extras}]' if extras else ''}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            output += "\n" + "".join(traceback.format_exception(*record.exc_info))

        return censor_sensitive_data(output)


# =============================================================================
# Log Context
# =============================================================================

_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)


class LogContext:
    """
    Context manager for adding contextual information to logs.

    Backed by a context variable, so concurrent deployments running as
    separate asyncio tasks keep their own fields.

    Usage:
        with LogContext(site_id="my-site", channel="live"):
            logger.info("Releasing")  # Will include site_id and channel
    """

    def __init__(self, **kwargs: Any):
        """
        Initialize log context with key-value pairs.

        Args:
            **kwargs: Context fields to add to log records
        """
        self.fields = kwargs
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> "LogContext":
        """Enter context and add fields."""
        merged = {**_log_context.get(), **self.fields}
        self._token = _log_context.set(merged)
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context and restore previous fields."""
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    @staticmethod
    def bind(**kwargs: Any) -> None:
        """Add fields to the innermost active context."""
        _log_context.set({**_log_context.get(), **kwargs})

    @classmethod
    def get_context(cls) -> dict[str, Any]:
        """Get current context fields."""
        return dict(_log_context.get())


class ContextFilter(logging.Filter):
    """Filter that adds context fields to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in LogContext.get_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


# =============================================================================
# Log Setup Functions
# =============================================================================

def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.addFilter(ContextFilter())
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure the root logger once at process start.

    stdout gets JSON or text depending on LOG_FORMAT; the rotating log file,
    when LOG_FILE is set, is always JSON. Arguments override settings.
    """
    settings = get_settings()

    level = getattr(logging, (log_level or settings.log_level).upper())
    if log_file:
        settings = settings.model_copy(update={"log_file": log_file})
    file_path = settings.get_log_file_path()
    format_type = (log_format or settings.log_format).lower()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_formatter = JSONFormatter() if format_type == "json" else ConsoleFormatter()
    root_logger.addHandler(
        _handler(logging.StreamHandler(sys.stdout), level, console_formatter)
    )

    if file_path:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            file_path,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        root_logger.addHandler(_handler(rotating, level, JSONFormatter()))

    # Per-request client chatter
    for name in ("httpx", "httpcore", "asyncio", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)

    get_logger(__name__).info(
        "Logging initialized",
        extra={
            "level": logging.getLevelName(level),
            "file": str(file_path) if file_path else None,
            "format": format_type,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name, typically __name__

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "setup_logging",
    "get_logger",
    "LogContext",
    "ContextFilter",
    "JSONFormatter",
    "ConsoleFormatter",
    "censor_sensitive_data",
]
