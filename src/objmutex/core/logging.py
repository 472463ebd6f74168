"""Logging helpers for objmutex.

The library itself only creates module loggers. Applications that want
objmutex's output formatted for them call ``setup_logging``, which takes a
``LogConfig`` (or reads one from the ``OBJMUTEX_LOG_*`` variables).
"""

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from objmutex.core.config import LogConfig, MutexConfig
from objmutex.core.constants import (
    DEFAULT_LOG_LEVEL,
    LOG_FILE_BACKUP_COUNT,
    LOG_FILE_MAX_BYTES,
    VALID_LOG_LEVELS,
)

TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_STANDARD_RECORD_FIELDS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def _render_message(record: logging.LogRecord) -> str:
    try:
        return record.getMessage()
    except Exception:
        # Bad placeholders must not break the caller.
        return f"{getattr(record, 'msg', '')!s} [log-message-format-error]"


def _context_fields(record: logging.LogRecord) -> dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_FIELDS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging output.

    Produces one JSON object per line. Lock context attached through
    ``with_log_context`` (``lock_bucket``, ``lock_key``, ``lock_holder``)
    or a call's ``extra`` argument appears as top-level keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _render_message(record),
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread_name": record.threadName,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in _context_fields(record).items():
            entry.setdefault(key, value)
        return json.dumps(entry, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter whose fields are merged with, not replaced by, a call's ``extra``."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        call_extra = kwargs.get("extra")
        kwargs["extra"] = {**self.extra, **(call_extra if isinstance(call_extra, dict) else {})}
        return msg, kwargs


def with_log_context(
    logger: logging.Logger | logging.LoggerAdapter | object, **context: object
) -> logging.Logger | logging.LoggerAdapter | object:
    """Return a logger that stamps ``context`` onto every record.

    Fields whose value is None are left out. Wrapping an existing adapter
    keeps its fields and wraps the underlying logger only once. Objects
    that are not loggers (test doubles) are returned unchanged.
    """
    if not isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        return logger

    fields: dict[str, object] = {}
    base = logger
    while isinstance(base, logging.LoggerAdapter):
        fields = {**dict(base.extra or {}), **fields}
        base = base.logger
    if not isinstance(base, logging.Logger):
        return logger

    fields.update({k: v for k, v in context.items() if v is not None})
    return ContextLoggerAdapter(base, fields)


def _resolve_level(level: str) -> int:
    name = level.strip().upper()
    if name not in VALID_LOG_LEVELS:
        print(f"Warning: Invalid log level '{level}', using {DEFAULT_LOG_LEVEL}", file=sys.stderr)
        name = DEFAULT_LOG_LEVEL
    return getattr(logging, name)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format.strip().lower() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_LOG_FORMAT)


def _build_handlers(log_file: str | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if not log_file:
        return handlers

    log_path = Path(log_file)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUP_COUNT))
    except OSError as e:
        print(f"Warning: Cannot open log file {log_path}: {e}. Logging to console only.", file=sys.stderr)
    return handlers


def setup_logging(
    config: LogConfig | None = None,
    *,
    log_level: str | None = None,
    log_format: str | None = None,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """Configure root logging for an application embedding objmutex.

    Args:
        config: Level, format and file to use. Read from the
            ``OBJMUTEX_LOG_LEVEL``, ``OBJMUTEX_LOG_FORMAT`` and
            ``OBJMUTEX_LOG_FILE`` variables when omitted.
        log_level: Overrides ``config.level``
        log_format: Overrides ``config.format`` ("text" or "json")
        log_file: Overrides ``config.file``; a rotating file handler is
            added next to stdout when a file is set

    Returns:
        The ``objmutex`` package logger
    """
    if config is None:
        config = MutexConfig.from_env().log
    settings = LogConfig(
        level=config.level if log_level is None else log_level,
        format=config.format if log_format is None else log_format,
        file=config.file if log_file is None else str(log_file),
    )

    numeric_level = _resolve_level(settings.level)
    formatter = _build_formatter(settings.format)

    for handler in logging.root.handlers[:]:
        handler.close()
        logging.root.removeHandler(handler)
    for handler in _build_handlers(settings.file):
        handler.setFormatter(formatter)
        handler.setLevel(numeric_level)
        logging.root.addHandler(handler)
    logging.root.setLevel(numeric_level)

    logger = logging.getLogger("objmutex")
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    return logger
