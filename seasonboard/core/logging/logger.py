"""
Logging for seasonboard.

Purpose
-------
One stdout log stream for the HTTP layer, the cache store, the upstream
client and the backup path.

Responsibilities
----------------
- Tag every record with the request it belongs to (`request_id`), the
  component and operation handling it, and the player being looked up
- Render JSON lines in production and readable text in development
- Move handler I/O off the event loop: the root logger only enqueues,
  a `QueueListener` thread writes
- Report queue pressure through `get_logging_health()`

Non-Responsibilities
--------------------
- Log shipping and retention (the container runtime collects stdout)
- Metrics

Architecture Notes
------------------
- Context lives in a `ContextVar`, so concurrent requests never see each
  other's fields
- The context filter runs on the queue handler, in the emitting task;
  the listener thread has no access to that task's context
- When the queue is full the record is dropped and counted
- Nothing is configured on import; `setup_logging()` is called by
  `seasonboard.main`
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
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Optional

from seasonboard.core.config.config import Config

CONTEXT_FIELDS = ("request_id", "component", "operation", "player_id")

TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(request_id)s] %(name)s: %(message)s"
TEXT_DATE_FORMAT = "%H:%M:%S"
QUEUE_MAX_SIZE = 10_000

NOISY_LOGGERS = ("asyncio", "httpx", "httpcore", "uvicorn.access")

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

_log_context: ContextVar[Dict[str, Any]] = ContextVar("seasonboard_log_context", default={})


# ============================================================================
# CONTEXT
# ============================================================================


class LogContext:
    """
    Bind context fields to every record logged inside the block.

    Usable with `with` and `async with`. A request id is generated when none
    is given. The previous context is restored on exit.

    Example
    -------
    >>> async with LogContext(component="api", operation="GET /current-leaderboard"):
    ...     logger.info("Serving leaderboard")
    """

    def __init__(
        self,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        player_id: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            "request_id": request_id or uuid.uuid4().hex[:8],
            "component": component,
            "operation": operation,
            "player_id": player_id,
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    @property
    def request_id(self) -> str:
        return self.context["request_id"]

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
    """Add fields to the current context, e.g. the player id once a route parses it."""
    merged = dict(_log_context.get())
    merged.update({key: value for key, value in fields.items() if value is not None})
    _log_context.set(merged)


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def clear_log_context() -> None:
    _log_context.set({})


class ContextFilter(logging.Filter):
    """Copy the current context onto the record as attributes."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()
        for field in CONTEXT_FIELDS:
            setattr(record, field, context.get(field) or "-")
        return True


# ============================================================================
# FORMATTERS
# ============================================================================


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Context fields sit at the top level; `extra={...}` fields are nested
    under `"extra"`. Values that are not JSON-native are rendered with `str`.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value and value != "-":
                payload[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Text formatter that colors the level name for terminals."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[1;91m",
    }
    RESET = "\033[0m"

    def formatMessage(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().formatMessage(record)

        levelname = record.levelname
        record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = levelname


# ============================================================================
# QUEUE
# ============================================================================


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_dropped: int
    handler_errors: int


class _DroppingQueueHandler(QueueHandler):
    """Enqueue without blocking; a full queue drops the record."""

    dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            type(self).dropped += 1


class _CountingQueueListener(QueueListener):
    errors = 0

    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        type(self).errors += 1
        sys.stderr.write(f"seasonboard: failed to write log record from {record.name}\n")


_listener: Optional[_CountingQueueListener] = None
_queue: Optional["queue.Queue[logging.LogRecord]"] = None


def _level() -> int:
    return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)


def _stdout_handler() -> logging.Handler:
    production = str(Config.ENVIRONMENT).lower() == "production"
    use_json = production if Config.LOG_JSON is None else Config.LOG_JSON

    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JSONFormatter())
    elif sys.stdout.isatty():
        handler.setFormatter(ColoredFormatter(TEXT_FORMAT, TEXT_DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, TEXT_DATE_FORMAT))
    return handler


def setup_logging() -> None:
    """Route the root logger through the queue. Calling it twice is a no-op."""
    global _listener, _queue

    if _listener is not None:
        return

    _queue = queue.Queue(QUEUE_MAX_SIZE)
    _DroppingQueueHandler.dropped = 0
    _CountingQueueListener.errors = 0

    queue_handler = _DroppingQueueHandler(_queue)
    queue_handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(queue_handler)
    root.setLevel(_level())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _listener = _CountingQueueListener(_queue, _stdout_handler())
    _listener.start()

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={"environment": Config.ENVIRONMENT, "log_level": logging.getLevelName(_level())},
    )


def shutdown_logging() -> None:
    """Drain the queue and detach every root handler."""
    global _listener, _queue

    if _listener is None:
        return

    listener, _listener = _listener, None
    listener.stop()
    for handler in listener.handlers:
        handler.flush()
        handler.close()

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    _queue = None


def get_logging_health() -> LoggingHealth:
    return LoggingHealth(
        initialized=_listener is not None,
        queue_size=_queue.qsize() if _queue is not None else 0,
        queue_max_size=_queue.maxsize if _queue is not None else 0,
        records_dropped=_DroppingQueueHandler.dropped,
        handler_errors=_CountingQueueListener.errors,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
