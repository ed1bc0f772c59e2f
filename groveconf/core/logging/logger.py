"""
groveconf Logging Subsystem

Purpose
-------
Provide structured logging for the configuration registry, its sources and
background watchers:

- Structured JSON logs for aggregation and analysis.
- LogContext-based propagation of the current source/group/option through
  ContextVars, so records emitted deep inside a load pass carry them.
- Correlation IDs to tie together every record of one load or reload pass.
- Thread-safe delivery via a QueueHandler + QueueListener pair, so watcher
  threads never block on slow sinks.
- Bounded queue with graceful degradation on overload.
- Console handler (JSON or colored text) and an optional daily rotating JSON
  file.

Responsibilities
----------------
- Enrich every record with context fields:
  - source, group, option
  - operation, correlation_id, component
- Provide helper APIs:
  - get_logger()
  - LogContext (sync context manager)
  - set_log_context() / clear_log_context()
  - setup_logging() / shutdown_logging()
  - get_logging_health()

Design Decisions
----------------
- A library must not touch the root logger on import. Nothing here runs until
  the application calls `setup_logging()`; until then groveconf loggers
  propagate to whatever the host application configured.
- JSONFormatter is the canonical representation.
- Extra fields passed via `logger.info("msg", extra={...})` are merged into JSON.

Dependencies
------------
- groveconf.core.settings.Settings
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import (
    QueueHandler,
    QueueListener,
    TimedRotatingFileHandler,
)
from pathlib import Path
from typing import Any, Dict, Optional

from groveconf.core.settings import Settings


# ============================================================================
# Operation Context (ContextVars)
# ============================================================================

_log_context: ContextVar[Dict[str, Any]] = ContextVar(
    "groveconf_log_context",
    default={},
)

_CONTEXT_FIELDS = ("source", "group", "option", "operation")


# ============================================================================
# Config
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Configuration for the logging subsystem, derived from Settings."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    DAILY_BASENAME: str = "groveconf_daily.json.log"
    DAILY_BACKUP_COUNT: int = 1

    QUEUE_MAX_SIZE: int = 10_000

    @property
    def log_level(self) -> int:
        level_name = Settings.LOG_LEVEL
        if Settings.DEBUG:
            level_name = "DEBUG"
        return getattr(logging, str(level_name).upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        return bool(Settings.LOG_JSON)

    @property
    def use_colors(self) -> bool:
        if self.use_json:
            return False
        return bool(Settings.LOG_COLORS) and sys.stdout.isatty()

    @property
    def logs_dir(self) -> Optional[Path]:
        return Settings.LOG_DIR


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Logging Metrics / Health
# ============================================================================


@dataclass
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


_logging_metrics: LoggingMetrics = LoggingMetrics()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_queue_listener: Optional[QueueListener] = None
_initialized: bool = False


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the active LogContext onto every record passing through."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context: Dict[str, Any] = _log_context.get({})

        for field in _CONTEXT_FIELDS:
            if getattr(record, field, None) is None:
                setattr(record, field, context.get(field, "N/A"))

        record.correlation_id = context.get("correlation_id") or "N/A"
        record.component = context.get("component") or record.name.split(".", 1)[0]
        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        original = record.levelname
        prefix = self.COLORS.get(original, "")
        if prefix:
            record.levelname = f"{prefix}{original}{self.COLORS['RESET']}"

        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    STANDARD_ATTRS = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
    }

    CONTEXT_ATTRS = {
        "source",
        "group",
        "option",
        "operation",
        "correlation_id",
        "component",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        created_dt = datetime.fromtimestamp(record.created, tz=timezone.utc)

        log_data: Dict[str, Any] = {
            "timestamp": created_dt.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for attr in self.CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, "N/A", ""):
                log_data[attr] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: val
            for key, val in record.__dict__.items()
            if key not in self.STANDARD_ATTRS
            and key not in self.CONTEXT_ATTRS
            and not key.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


# ============================================================================
# Queue Handler & Listener
# ============================================================================


class GroveQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.records_enqueued += 1

        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _logging_metrics.records_dropped += 1
            sys.stderr.write("groveconf logging queue full; dropping log record.\n")


class GroveQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.listener_errors += 1
        sys.stderr.write("groveconf logging handler error while processing record.\n")


# ============================================================================
# Global Setup
# ============================================================================


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOGGER_CONFIG.log_level)

    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    elif LOGGER_CONFIG.use_colors:
        handler.setFormatter(
            ColoredFormatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    else:
        handler.setFormatter(
            logging.Formatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    return handler


def _build_daily_file_handler(logs_dir: Path) -> logging.Handler:
    logs_dir.mkdir(parents=True, exist_ok=True)

    handler = TimedRotatingFileHandler(
        filename=str(logs_dir / LOGGER_CONFIG.DAILY_BASENAME),
        when="midnight",
        interval=1,
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(LOGGER_CONFIG.log_level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(logger_name: str = "groveconf") -> None:
    """
    Install the queue-backed handlers on the `logger_name` logger.

    Parameters
    ----------
    logger_name:
        Logger to configure. Defaults to the groveconf package logger; pass
        ``""`` to configure the root logger from an application entry point.

    Examples
    --------
    >>> Settings.load()
    >>> setup_logging()
    """
    global _queue_listener, _logging_metrics, _log_queue, _initialized

    if _initialized:
        return

    Settings.ensure_loaded()
    _logging_metrics = LoggingMetrics()

    target = logging.getLogger(logger_name)
    target.setLevel(LOGGER_CONFIG.log_level)

    handlers = [_build_console_handler()]
    if LOGGER_CONFIG.logs_dir is not None:
        handlers.append(_build_daily_file_handler(LOGGER_CONFIG.logs_dir))

    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _queue_listener = GroveQueueListener(_log_queue, *handlers, respect_handler_level=True)
    _queue_listener.start()

    queue_handler = GroveQueueHandler(_log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    queue_handler.addFilter(ContextFilter())
    target.addHandler(queue_handler)
    if logger_name:
        target.propagate = False

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    _initialized = True

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "colors": LOGGER_CONFIG.use_colors,
            "logs_dir": str(LOGGER_CONFIG.logs_dir) if LOGGER_CONFIG.logs_dir else None,
            "queue_max_size": LOGGER_CONFIG.QUEUE_MAX_SIZE,
        },
    )


def shutdown_logging(logger_name: str = "groveconf") -> None:
    global _queue_listener, _log_queue, _initialized

    if not _initialized:
        return

    log = logging.getLogger(__name__)
    log.info("Shutting down logging subsystem.")

    if _queue_listener is not None:
        _queue_listener.stop()
        for handler in _queue_listener.handlers:
            handler.flush()
            handler.close()
        _queue_listener = None

    target = logging.getLogger(logger_name)
    for handler in list(target.handlers):
        if isinstance(handler, GroveQueueHandler):
            target.removeHandler(handler)
    if logger_name:
        target.propagate = True

    _log_queue = None
    _initialized = False


def get_logging_health() -> LoggingHealth:
    queue_size = 0
    max_size = 0
    if _log_queue is not None:
        queue_size = _log_queue.qsize()
        max_size = _log_queue.maxsize

    return LoggingHealth(
        initialized=_initialized,
        queue_size=queue_size,
        queue_max_size=max_size,
        records_enqueued=_logging_metrics.records_enqueued,
        records_dropped=_logging_metrics.records_dropped,
        listener_errors=_logging_metrics.listener_errors,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(f, ContextFilter) for f in logger.filters):
        logger.addFilter(ContextFilter())
    return logger


class LogContext:
    """
    Scope context fields to a block of code.

    Examples
    --------
    >>> with LogContext(source="file:/etc/app.ini", operation="load"):
    ...     registry.load_source(source)
    """

    def __init__(
        self,
        source: Optional[str] = None,
        group: Optional[str] = None,
        option: Optional[str] = None,
        operation: Optional[str] = None,
        component: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        inherited = _log_context.get({})

        self.context: Dict[str, Any] = {
            **inherited,
            "correlation_id": correlation_id
            or inherited.get("correlation_id")
            or self._generate_correlation_id(),
            **extra,
        }
        for key, value in (
            ("source", source),
            ("group", group),
            ("option", option),
            ("operation", operation),
            ("component", component),
        ):
            if value is not None:
                self.context[key] = value

        self._token: Optional[Token[Dict[str, Any]]] = None

    @staticmethod
    def _generate_correlation_id() -> str:
        return str(uuid.uuid4())[:8]

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


def set_log_context(
    source: Optional[str] = None,
    group: Optional[str] = None,
    option: Optional[str] = None,
    operation: Optional[str] = None,
    component: Optional[str] = None,
    correlation_id: Optional[str] = None,
    **extra: Any,
) -> None:
    current = _log_context.get({}).copy()

    for key, value in (
        ("source", source),
        ("group", group),
        ("option", option),
        ("operation", operation),
        ("component", component),
        ("correlation_id", correlation_id),
    ):
        if value is not None:
            current[key] = value

    current.update(extra)
    _log_context.set(current)


def clear_log_context() -> None:
    _log_context.set({})


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get({}))
