"""Structured logging backends built on structlog.

Two backends share one processor chain and differ only in how a finished
record is rendered:

- PrettyLogger: colorized console output for interactive development
- JsonLineLogger: one JSON object per line for deployed/CI environments;
  ``error`` records go to stderr, everything else to stdout

Records are assembled in a fixed priority order (later wins):

    base identity (service/env/version)
      < ambient trace context
        < bindings (parent, then child)
          < call-site fields

and always start with ``level``, ``msg``, ``timestamp``, ``service``,
``env`` and ``version``.
"""

import copy
import json
import sys
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import IO, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from gamma.observability.errors import safe_str
from gamma.observability.metrics import LOG_EMIT_FAILURES, LOG_RECORDS
from gamma.observability.models import LEVEL_ORDER, LoggerConfig, LogContext, LogLevel
from gamma.observability.redaction import Redactor
from gamma.observability.tracing import get_log_context

# structlog method name for each level
_METHODS: dict[str, str] = {
    "debug": "debug",
    "info": "info",
    "warn": "warning",
    "error": "error",
}
_LABELS: dict[str, str] = {method: level for level, method in _METHODS.items()}

# Private event keys used to hand the layers to RecordAssembler without
# colliding with caller field names such as "event".
_LAYERS_KEY = "__gamma_layers"
_MSG_KEY = "__gamma_msg"

_IDENTITY_KEYS = ("service", "env", "version")
_OWNED_KEYS = ("level", "msg", "timestamp")

_TIMESTAMPER = structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp")


def normalize_level(level: str) -> LogLevel:
    """Map a level name onto one of debug/info/warn/error.

    Unknown names map to ``info`` so a typo never drops or breaks a record.
    """
    level = level.lower()
    if level == "warning":
        return "warn"
    if level in LEVEL_ORDER:
        return level  # type: ignore[return-value]
    return "info"


class Logger(ABC):
    """Structured logger interface shared by every backend.

    Use ``log_message`` for a bare message and ``log_structured`` for fields
    plus an optional message. ``info``/``warn``/``error``/``debug`` are
    shorthands taking the message positionally and fields as keywords.
    """

    @abstractmethod
    def log_structured(
        self,
        level: str,
        fields: Mapping[str, Any],
        msg: str | None = None,
        *,
        ambient: Mapping[str, Any] | None = None,
    ) -> None:
        """Emit one record.

        Args:
            level: debug, info, warn or error
            fields: Call-site fields (highest priority)
            msg: Record message; falls back to a ``msg`` field, then ""
            ambient: Context merged beneath bindings (trace correlation)
        """

    @abstractmethod
    def child(self, bindings: Mapping[str, Any]) -> "Logger":
        """Return a logger that adds ``bindings`` to every record."""

    @abstractmethod
    def is_level_enabled(self, level: str) -> bool:
        """Whether a record at ``level`` would be emitted."""

    def log_message(self, level: str, msg: str) -> None:
        self.log_structured(level, {}, msg)

    def debug(self, msg: str | None = None, /, **fields: Any) -> None:
        self.log_structured("debug", fields, msg)

    def info(self, msg: str | None = None, /, **fields: Any) -> None:
        self.log_structured("info", fields, msg)

    def warn(self, msg: str | None = None, /, **fields: Any) -> None:
        self.log_structured("warn", fields, msg)

    warning = warn

    def error(self, msg: str | None = None, /, **fields: Any) -> None:
        self.log_structured("error", fields, msg)


class StreamRouter:
    """Wrapped logger that writes rendered lines to stdout or stderr.

    Streams default to the current ``sys.stdout``/``sys.stderr`` at write
    time, so redirected streams are honored.
    """

    def __init__(self, stdout: IO[str] | None = None, stderr: IO[str] | None = None) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self._lock = threading.Lock()

    @property
    def stdout(self) -> IO[str]:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def stderr(self) -> IO[str]:
        return self._stderr if self._stderr is not None else sys.stderr

    def _write(self, stream: IO[str], message: str) -> None:
        with self._lock:
            stream.write(message + "\n")
            stream.flush()

    def msg(self, message: str) -> None:
        self._write(self.stdout, message)

    debug = info = warning = msg

    def error(self, message: str) -> None:
        self._write(self.stderr, message)

    critical = error


class RecordAssembler:
    """Processor that merges the context layers into the final record shape."""

    def __init__(self, config: LoggerConfig) -> None:
        self._base: LogContext = {
            "service": config.service,
            "env": config.env,
            "version": config.version,
        }

    def __call__(
        self,
        _logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        ambient, bindings, fields = event_dict.pop(_LAYERS_KEY, ({}, {}, {}))
        msg = event_dict.pop(_MSG_KEY, None)
        timestamp = event_dict.pop("timestamp", None)
        if event_dict.get("event") is None:
            event_dict.pop("event", None)

        merged: dict[str, Any] = {
            **self._base,
            **ambient,
            **event_dict,
            **bindings,
            **fields,
        }
        field_msg = merged.pop("msg", None)
        if msg is None:
            msg = field_msg
        for key in _OWNED_KEYS:
            merged.pop(key, None)

        record: dict[str, Any] = {
            "level": _LABELS.get(method_name, method_name),
            "msg": "" if msg is None else safe_str(msg),
            "timestamp": timestamp,
        }
        for key in _IDENTITY_KEYS:
            record[key] = merged.pop(key, None)
        record.update(merged)
        return record


class SafeFields:
    """Processor that makes a record JSON-safe.

    Non-string keys become ``str(key)`` and unserializable values become
    ``str(value)``.
    """

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        if not all(isinstance(key, str) for key in event_dict):
            event_dict = {
                (key if isinstance(key, str) else safe_str(key)): value
                for key, value in event_dict.items()
            }
        for key, value in event_dict.items():
            try:
                json.dumps(value, default=safe_str)
            except (TypeError, ValueError, RecursionError):
                event_dict[key] = safe_str(value)
        return event_dict


def count_records(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Count emitted records per level."""
    LOG_RECORDS.labels(level=event_dict.get("level", "unknown")).inc()
    return event_dict


class StructlogLogger(Logger):
    """Common structlog plumbing for the concrete backends.

    Subclasses provide the renderer processors; everything up to the
    renderer is shared so both backends produce identical fields.
    """

    def __init__(
        self,
        config: LoggerConfig,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
    ) -> None:
        self.config = config
        self._bindings: LogContext = {}
        self._sink = StreamRouter(stdout=stdout, stderr=stderr)
        self._bound = structlog.wrap_logger(
            self._sink,
            processors=self._build_processors(),
            wrapper_class=structlog.make_filtering_bound_logger(LEVEL_ORDER[config.level]),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

    @property
    def bindings(self) -> LogContext:
        return dict(self._bindings)

    def _build_processors(self) -> list[Processor]:
        return [
            _TIMESTAMPER,
            RecordAssembler(self.config),
            Redactor(self.config.redact_paths),
            SafeFields(),
            count_records,
            *self._renderer_processors(),
        ]

    @abstractmethod
    def _renderer_processors(self) -> list[Processor]:
        """Processors that turn the finished record into a string."""

    def is_level_enabled(self, level: str) -> bool:
        return LEVEL_ORDER[normalize_level(level)] >= LEVEL_ORDER[self.config.level]

    def log_structured(
        self,
        level: str,
        fields: Mapping[str, Any],
        msg: str | None = None,
        *,
        ambient: Mapping[str, Any] | None = None,
    ) -> None:
        level = normalize_level(level)
        try:
            emit = getattr(self._bound, _METHODS[level])
            emit(
                None,
                **{
                    _LAYERS_KEY: (dict(ambient or {}), self._bindings, dict(fields)),
                    _MSG_KEY: msg,
                },
            )
        except Exception as exc:  # noqa: BLE001 - logging must never fail the caller
            self._emit_fallback(level, msg, exc)

    def child(self, bindings: Mapping[str, Any]) -> "StructlogLogger":
        clone = copy.copy(self)
        clone._bindings = {**self._bindings, **bindings}
        return clone

    def _emit_fallback(self, level: str, msg: Any, exc: Exception) -> None:
        LOG_EMIT_FAILURES.inc()
        line = json.dumps(
            {
                "level": "error",
                "msg": "log emission failed",
                "timestamp": _TIMESTAMPER(None, "error", {})["timestamp"],
                "service": self.config.service,
                "env": self.config.env,
                "version": self.config.version,
                "droppedLevel": level,
                "droppedMsg": safe_str(msg),
                "error": f"{type(exc).__name__}: {safe_str(exc)}",
            }
        )
        try:
            self._sink.error(line)
        except (OSError, ValueError):
            # stderr itself is gone; nothing left to report to
            pass


class JsonLineLogger(StructlogLogger):
    """Machine-facing backend: one JSON object per line."""

    def _renderer_processors(self) -> list[Processor]:
        return [structlog.processors.JSONRenderer(default=safe_str)]


def _to_console_event(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Adapt a finished record to ConsoleRenderer's key names."""
    event_dict["event"] = event_dict.pop("msg", "")
    err = event_dict.get("err")
    if isinstance(err, dict) and err.get("stack"):
        event_dict["err"] = {k: v for k, v in err.items() if k != "stack"}
        event_dict["exception"] = str(err["stack"])
    return event_dict


class PrettyLogger(StructlogLogger):
    """Developer-facing backend rendering readable, colorized text."""

    def __init__(
        self,
        config: LoggerConfig,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
        colors: bool = True,
    ) -> None:
        self.colors = colors
        super().__init__(config, stdout=stdout, stderr=stderr)

    def _renderer_processors(self) -> list[Processor]:
        return [
            _to_console_event,
            structlog.dev.ConsoleRenderer(
                colors=self.colors,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]


class TraceContextLogger(Logger):
    """Decorator that merges the ambient trace context into every record.

    The context is read on each call, so a logger created once at import
    time still correlates records with whichever request is current.
    """

    def __init__(
        self,
        base: Logger,
        context_provider: Callable[[], LogContext] = get_log_context,
    ) -> None:
        self._base = base
        self._context_provider = context_provider

    @property
    def base(self) -> Logger:
        return self._base

    def log_structured(
        self,
        level: str,
        fields: Mapping[str, Any],
        msg: str | None = None,
        *,
        ambient: Mapping[str, Any] | None = None,
    ) -> None:
        if not self._base.is_level_enabled(level):
            return
        trace = self._context_provider()
        self._base.log_structured(level, fields, msg, ambient={**trace, **(ambient or {})})

    def child(self, bindings: Mapping[str, Any]) -> "TraceContextLogger":
        return TraceContextLogger(self._base.child(bindings), self._context_provider)

    def is_level_enabled(self, level: str) -> bool:
        return self._base.is_level_enabled(level)
