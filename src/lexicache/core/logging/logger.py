"""
lexicache Logging Subsystem

Purpose
-------
Structured, async-safe logging for the cache, preloader and health checker:

- Structured JSON logs for aggregation and analysis.
- LogContext-based propagation of operation context via ContextVars
  (locale, namespace, preload run id, correlation id).
- Async-safe logging via a QueueHandler + QueueListener architecture so the
  event loop never blocks on handler I/O.
- Bounded log queue with graceful degradation on overload.
- Console handler (JSON in production, colored human text in development)
  plus an optional rotating JSON file handler when a logs directory is set.

Design Decisions
----------------
- Library modules only ever call `get_logger(__name__)`. Nothing is
  configured at import time; the host application calls `setup_logging()`.
- Extra fields passed via `logger.info("msg", extra={...})` are merged into JSON.
- ContextFilter enriches every record from the current LogContext.
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
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from typing import Any, Dict, Optional

from lexicache.core.config.settings import Settings


_log_context: ContextVar[Dict[str, Any]] = ContextVar("lexicache_log_context", default={})

_CONTEXT_FIELDS = ("locale", "namespace", "run_id", "component", "operation", "correlation_id")


# ============================================================================
# Config
# ============================================================================


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Formatting and queue parameters for the logging subsystem."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    DAILY_BASENAME: str = "lexicache.json.log"
    DAILY_BACKUP_COUNT: int = 1
    QUEUE_MAX_SIZE: int = 10_000


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Logging Metrics / Health
# ============================================================================


@dataclass(slots=True)
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


@dataclass(frozen=True, slots=True)
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


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context: Dict[str, Any] = _log_context.get({})

        for name in _CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, context.get(name, "N/A"))

        if getattr(record, "component", "N/A") == "N/A":
            record.component = record.name.split(".")[1] if "." in record.name else record.name

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
        reset = self.COLORS["RESET"] if prefix else ""

        if prefix:
            record.levelname = f"{prefix}{original}{reset}"

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

        for attr in _CONTEXT_FIELDS:
            value = getattr(record, attr, None)
            if value not in (None, "N/A"):
                log_data[attr] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra: Dict[str, Any] = {}
        for key, val in record.__dict__.items():
            if key in self.STANDARD_ATTRS or key in _CONTEXT_FIELDS or key.startswith("_"):
                continue
            extra[key] = val

        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


# ============================================================================
# Queue Handler & Listener
# ============================================================================


class LexicacheQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.records_enqueued += 1

        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _logging_metrics.records_dropped += 1
            try:
                sys.stderr.write("lexicache logging queue full; dropping log record.\n")
            except Exception:
                pass


class LexicacheQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.listener_errors += 1
        try:
            sys.stderr.write("lexicache logging handler error while processing record.\n")
        except Exception:
            pass


# ============================================================================
# Setup
# ============================================================================


def _build_console_handler(settings: Settings) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    level = getattr(logging, settings.log_level, logging.INFO)
    handler.setLevel(level)

    if settings.use_json_logs:
        handler.setFormatter(JSONFormatter())
    elif settings.log_colors and sys.stdout.isatty():
        handler.setFormatter(
            ColoredFormatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    else:
        handler.setFormatter(
            logging.Formatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )

    return handler


def _build_daily_file_handler(settings: Settings) -> logging.Handler:
    assert settings.logs_dir is not None
    settings.logs_dir.mkdir(parents=True, exist_ok=True)

    handler = TimedRotatingFileHandler(
        filename=str(settings.logs_dir / LOGGER_CONFIG.DAILY_BASENAME),
        when="midnight",
        interval=1,
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(getattr(logging, settings.log_level, logging.INFO))
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure the `lexicache` logger hierarchy.

    Only the package logger is touched, never the root logger, so host
    applications keep control of their own handlers. Idempotent.
    """
    global _queue_listener, _logging_metrics, _log_queue

    settings = settings or Settings.from_env()
    package_logger = logging.getLogger("lexicache")

    if getattr(package_logger, "_lexicache_logging_initialized", False):
        return

    _logging_metrics = LoggingMetrics()
    level = getattr(logging, settings.log_level, logging.INFO)

    package_logger.setLevel(level)
    package_logger.handlers.clear()
    package_logger.filters.clear()
    package_logger.propagate = False

    handlers = [_build_console_handler(settings)]
    if settings.logs_dir is not None:
        handlers.append(_build_daily_file_handler(settings))

    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _queue_listener = LexicacheQueueListener(_log_queue, *handlers, respect_handler_level=True)
    _queue_listener.start()

    queue_handler = LexicacheQueueHandler(_log_queue)
    queue_handler.setLevel(level)
    queue_handler.addFilter(ContextFilter())
    package_logger.addHandler(queue_handler)

    setattr(package_logger, "_lexicache_logging_initialized", True)

    package_logger.info(
        "Logging initialized",
        extra={
            "environment": settings.environment.value,
            "log_level": settings.log_level,
            "json": settings.use_json_logs,
            "logs_dir": str(settings.logs_dir) if settings.logs_dir else None,
            "queue_max_size": LOGGER_CONFIG.QUEUE_MAX_SIZE,
        },
    )


def shutdown_logging() -> None:
    global _queue_listener, _log_queue

    package_logger = logging.getLogger("lexicache")
    if not getattr(package_logger, "_lexicache_logging_initialized", False):
        return

    package_logger.info("Shutting down logging subsystem.")

    if _queue_listener:
        try:
            _queue_listener.stop()
            for handler in _queue_listener.handlers:
                handler.close()
        finally:
            _queue_listener = None

    for handler in list(package_logger.handlers):
        handler.flush()
        handler.close()
        package_logger.removeHandler(handler)

    package_logger.propagate = True
    setattr(package_logger, "_lexicache_logging_initialized", False)
    _log_queue = None


def get_logging_health() -> LoggingHealth:
    initialized = bool(
        getattr(logging.getLogger("lexicache"), "_lexicache_logging_initialized", False)
    )

    queue_size = 0
    max_size = 0
    if _log_queue is not None:
        queue_size = _log_queue.qsize()
        max_size = _log_queue.maxsize

    return LoggingHealth(
        initialized=initialized,
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
    return logging.getLogger(name)


class LogContext:
    """
    Scoped logging context (sync and async context manager).

    >>> with LogContext(locale="en", operation="preload"):
    ...     logger.info("Preloading")  # record carries locale/operation
    """

    def __init__(
        self,
        locale: Optional[str] = None,
        namespace: Optional[str] = None,
        run_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        current = _log_context.get({})
        self.context: Dict[str, Any] = {
            **current,
            "correlation_id": correlation_id
            or current.get("correlation_id")
            or self._generate_correlation_id(),
            **extra,
        }
        for name, value in (
            ("locale", locale),
            ("namespace", namespace),
            ("run_id", run_id),
            ("component", component),
            ("operation", operation),
        ):
            if value is not None:
                self.context[name] = value

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

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    current = _log_context.get({}).copy()
    current.update({k: v for k, v in fields.items() if v is not None})
    _log_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get({}))


def clear_log_context() -> None:
    _log_context.set({})
