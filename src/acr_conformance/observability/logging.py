"""
Process-level structured logging.

Library modules log through ``structlog.get_logger(__name__)`` with an event name and
keyword fields. A logging session routes those events into the stdlib
``acr_conformance`` logger, hands them to a background listener through a bounded
queue that drops rather than blocks, and writes one redacted JSON object per line to
``<base_log_dir>/<session_id>/acr_conformance.jsonl`` (and stdout, if asked).

A rendered line looks like::

    {"acr_id": "acr-guide", "event": "version_created", "fields": {"version": 2},
     "level": "INFO", "logger": "acr_conformance.versioning.service",
     "session_id": "run-...", "timestamp": "2026-03-01T10:00:00.000Z"}

Correlation fields bound with :func:`correlation_scope` become top-level keys; event
keyword arguments land under ``fields``.
"""

from __future__ import annotations

import atexit
import contextvars
import json
import logging
import logging.handlers
import math
import queue
import re
import sys
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Final

import structlog

from acr_conformance.constants import LOG_DIR

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

REDACTED_VALUE: Final[str] = "***REDACTED***"
DEFAULT_LOGGER_NAME: Final[str] = "acr_conformance"

_SECRET_KEY_TERMS: Final[tuple[str, ...]] = (
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "credential",
    "passphrase",
    "password",
    "private_key",
    "secret",
    "token",
)
_INLINE_SECRET: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_BUILTINS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"asctime", "correlation", "message", "taskName"}

_Correlation = tuple[tuple[str, str], ...]
_CORRELATION: contextvars.ContextVar[_Correlation] = contextvars.ContextVar(
    "acr_conformance_correlation", default=()
)


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Settings of one logging session; ``session_id`` names its log directory."""

    session_id: str
    base_log_dir: Path | str = Path(str(LOG_DIR))
    logger_name: str = DEFAULT_LOGGER_NAME
    level: int | str = "INFO"
    queue_size: int = 4096
    log_filename: str = "acr_conformance.jsonl"
    log_to_stdout: bool = False
    rotating_file: bool = True
    max_bytes: int = 10_000_000
    backup_count: int = 5
    redact_secrets: bool = True


class _DropCounter:
    """Thread-safe count of records discarded because the queue was full."""

    __slots__ = ("_count", "_lock")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0

    def increment(self) -> None:
        with self._lock:
            self._count += 1

    def value(self) -> int:
        with self._lock:
            return self._count


class _NonBlockingQueueHandler(logging.handlers.QueueHandler):
    def __init__(self, log_queue: queue.Queue[object], drops: _DropCounter) -> None:
        super().__init__(log_queue)
        self._drops = drops

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # The listener thread cannot see this thread's context variables.
        bound = get_correlation_context()
        if bound:
            record.correlation = bound
        prepared: logging.LogRecord = super().prepare(record)
        return prepared

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self._drops.increment()


class _JsonLinesFormatter(logging.Formatter):
    def __init__(self, session_id: str, redactor: LogRedactor) -> None:
        super().__init__()
        self._session_id = session_id
        self._redact = redactor

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, JSONValue] = {
            "event": _text(self._redact(record.getMessage())),
            "level": record.levelname,
            "logger": record.name,
            "session_id": self._session_id,
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
        }
        line.update(getattr(record, "correlation", {}))
        fields = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _RECORD_BUILTINS and not key.startswith("_")
        }
        if fields:
            line["fields"] = self._redact(fields)
        if record.exc_info:
            line["exception"] = _text(self._redact(self.formatException(record.exc_info)))
        return json.dumps(line, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class StructuredLoggingHandle:
    """A running logging session: its logger, log file, queue, and listener thread."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        session_id: str,
        log_path: Path,
        log_queue: queue.Queue[object],
        queue_handler: _NonBlockingQueueHandler,
        sinks: tuple[logging.Handler, ...],
        drops: _DropCounter,
    ) -> None:
        self.logger = logger
        self.session_id = session_id
        self.log_path = log_path
        self._queue = log_queue
        self._queue_handler = queue_handler
        self._sinks = sinks
        self._drops = drops
        self._listener = logging.handlers.QueueListener(
            log_queue, *sinks, respect_handler_level=True
        )
        self._lock = threading.Lock()
        self._closed = False

    @property
    def dropped_records(self) -> int:
        return self._drops.value()

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._listener.start()
        self.logger.addHandler(self._queue_handler)

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        """Wait (bounded) for the listener to drain the queue, then flush the sinks."""

        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while self._queue.unfinished_tasks and time.monotonic() < deadline:
            time.sleep(0.01)
        for sink in self._sinks:
            sink.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._lock:
            if self._closed:
                return
            self.flush(timeout_seconds=timeout_seconds)
            self._listener.stop()
            self.logger.removeHandler(self._queue_handler)
            self.logger.propagate = True
            self._queue_handler.close()
            for sink in self._sinks:
                sink.close()
            self._closed = True


class _ActiveSession:
    """The one session that module-level helpers and ``atexit`` act on."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handle: StructuredLoggingHandle | None = None
        self._hooked = False

    def get(self) -> StructuredLoggingHandle | None:
        with self._lock:
            return self._handle

    def replace(self, handle: StructuredLoggingHandle) -> None:
        with self._lock:
            self._handle = handle
            if not self._hooked:
                atexit.register(shutdown_logging)
                self._hooked = True

    def clear(self, handle: StructuredLoggingHandle) -> None:
        with self._lock:
            if self._handle is handle:
                self._handle = None


_ACTIVE: Final[_ActiveSession] = _ActiveSession()


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    session_id: str,
    log_dir: Path | str | None = None,
) -> StructuredLoggingHandle:
    """Start a session from the ``[observability]`` config section."""

    section = observability_config or {}
    directory = log_dir if log_dir is not None else section.get("log_dir")
    level = section.get("log_level", "INFO")
    return setup_structured_logging(
        LoggingConfig(
            session_id=session_id,
            base_log_dir=directory if isinstance(directory, Path | str) else Path(str(LOG_DIR)),
            level=level if isinstance(level, int | str) else "INFO",
            log_to_stdout=bool(section.get("log_to_stdout", False)),
            redact_secrets=bool(section.get("redact_secrets", True)),
        )
    )


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Start a session, replacing any active one, and point ``structlog`` at it."""

    session_id = _required_text(config.session_id, "session_id")
    filename = _required_text(config.log_filename, "log_filename")
    if Path(filename).name != filename:
        raise ValueError(f"log_filename must not contain path separators: {filename!r}")
    if config.queue_size <= 0:
        raise ValueError(f"queue_size must be > 0, got {config.queue_size}")
    level = _level_number(config.level)
    logger_name = _required_text(config.logger_name, "logger_name")

    previous = _ACTIVE.get()
    if previous is not None:
        shutdown_logging(previous)

    log_path = Path(config.base_log_dir) / session_id / filename
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_sink: logging.Handler = (
        logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max(config.max_bytes, 1),
            backupCount=max(config.backup_count, 1),
            encoding="utf-8",
        )
        if config.rotating_file
        else logging.FileHandler(log_path, encoding="utf-8")
    )
    sinks = [file_sink]
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler(sys.stdout))
    formatter = _JsonLinesFormatter(
        session_id, default_log_redactor if config.redact_secrets else _no_redaction
    )
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False

    log_queue: queue.Queue[object] = queue.Queue(maxsize=config.queue_size)
    drops = _DropCounter()
    queue_handler = _NonBlockingQueueHandler(log_queue, drops)
    queue_handler.setLevel(level)

    handle = StructuredLoggingHandle(
        logger=logger,
        session_id=session_id,
        log_path=log_path,
        log_queue=log_queue,
        queue_handler=queue_handler,
        sinks=tuple(sinks),
        drops=drops,
    )
    handle.start()
    configure_structlog()
    _ACTIVE.replace(handle)
    return handle


def configure_structlog() -> None:
    """Send ``structlog`` events through stdlib logging, keyword fields as ``extra``."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    return _ACTIVE.get()


def flush_logging(
    handle: StructuredLoggingHandle | None = None, *, timeout_seconds: float = 2.0
) -> None:
    target = handle or _ACTIVE.get()
    if target is not None:
        target.flush(timeout_seconds=timeout_seconds)


def shutdown_logging(
    handle: StructuredLoggingHandle | None = None, *, timeout_seconds: float = 2.0
) -> None:
    target = handle or _ACTIVE.get()
    if target is None:
        return
    target.shutdown(timeout_seconds=timeout_seconds)
    _ACTIVE.clear(target)


def get_correlation_context() -> dict[str, str]:
    return dict(_CORRELATION.get())


def set_correlation_fields(**fields: str | None) -> contextvars.Token[_Correlation]:
    """Bind correlation fields for the current context; ``None`` unbinds a field."""

    bound = get_correlation_context()
    for key, value in fields.items():
        if value is None:
            bound.pop(key, None)
        else:
            bound[_required_text(key, "correlation key")] = _required_text(
                value, f"correlation field {key!r}"
            )
    return _CORRELATION.set(tuple(bound.items()))


def reset_correlation_fields(token: contextvars.Token[_Correlation]) -> None:
    _CORRELATION.reset(token)


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    token = set_correlation_fields(**fields)
    try:
        yield
    finally:
        reset_correlation_fields(token)


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Mask values under secret-looking keys and inline ``key=value`` / bearer secrets."""

    if isinstance(value, dict):
        return {
            key: REDACTED_VALUE if _is_secret_key(key) else default_log_redactor(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    if isinstance(value, str):
        masked = _INLINE_SECRET.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED_VALUE}", value)
        return _BEARER.sub(f"Bearer {REDACTED_VALUE}", masked)
    return value


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(term in lowered for term in _SECRET_KEY_TERMS)


def _no_redaction(value: JSONValue) -> JSONValue:
    return value


def _required_text(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {type(value).__name__}")
    if not value.strip():
        raise ValueError(f"{name} must not be empty")
    return value.strip()


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.strip().upper())
    if not isinstance(number, int):
        raise ValueError(f"unsupported logging level {level!r}")
    return number


def _text(value: JSONValue) -> str:
    return value if isinstance(value, str) else json.dumps(value, sort_keys=True)


def _jsonable(value: object) -> JSONValue:
    """Best-effort JSON form of an ``extra`` value; unknown objects fall back to ``repr``."""

    if isinstance(value, Enum):
        value = value.value
    if value is None or isinstance(value, bool | int | str):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return aware.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonable(item) for item in value]
    if isinstance(value, set | frozenset):
        return sorted((_jsonable(item) for item in value), key=json.dumps)
    return repr(value)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "REDACTED_VALUE",
    "JSONValue",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "reset_correlation_fields",
    "set_correlation_fields",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
