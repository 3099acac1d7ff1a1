"""Test helpers for code that logs.

MemoryLogger keeps every record instead of writing it. Children share the
parent's record list so a test can assert on everything a component logged.
CapturedStreams collects what a real backend writes.
"""

import io
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from gamma.observability.logging import Logger, normalize_level
from gamma.observability.models import LEVEL_ORDER, LogContext, LogLevel


@dataclass
class LogEntry:
    """One recorded call."""

    level: str
    msg: str | None
    fields: LogContext
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class MemoryLogger(Logger):
    """Logger that records entries in memory."""

    def __init__(
        self,
        level: LogLevel = "debug",
        bindings: Mapping[str, Any] | None = None,
        entries: list[LogEntry] | None = None,
    ) -> None:
        self.level = level
        self.bindings: LogContext = dict(bindings or {})
        self.entries: list[LogEntry] = entries if entries is not None else []

    def log_structured(
        self,
        level: str,
        fields: Mapping[str, Any],
        msg: str | None = None,
        *,
        ambient: Mapping[str, Any] | None = None,
    ) -> None:
        level = normalize_level(level)
        if not self.is_level_enabled(level):
            return
        merged = {**(ambient or {}), **self.bindings, **fields}
        self.entries.append(LogEntry(level=level, msg=msg, fields=merged))

    def child(self, bindings: Mapping[str, Any]) -> "MemoryLogger":
        return MemoryLogger(
            level=self.level,
            bindings={**self.bindings, **bindings},
            entries=self.entries,
        )

    def is_level_enabled(self, level: str) -> bool:
        return LEVEL_ORDER[normalize_level(level)] >= LEVEL_ORDER[self.level]

    def clear(self) -> None:
        self.entries.clear()

    def by_level(self, level: str) -> list[LogEntry]:
        return [entry for entry in self.entries if entry.level == level]

    @property
    def last(self) -> LogEntry | None:
        return self.entries[-1] if self.entries else None

    def has_message(self, text: str) -> bool:
        return any(entry.msg and text in entry.msg for entry in self.entries)

    def has_field(self, key: str, value: Any) -> bool:
        return any(entry.fields.get(key) == value for entry in self.entries)


class CapturedStreams:
    """stdout/stderr buffers for a backend, with JSON-line helpers.

    Usage:
        streams = CapturedStreams()
        logger = create_logger(config, stdout=streams.stdout, stderr=streams.stderr)
        logger.info("hello")
        assert streams.out_records()[0]["msg"] == "hello"
    """

    def __init__(self) -> None:
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()

    @staticmethod
    def _lines(stream: io.StringIO) -> list[str]:
        return [line for line in stream.getvalue().splitlines() if line]

    @property
    def out_lines(self) -> list[str]:
        return self._lines(self.stdout)

    @property
    def err_lines(self) -> list[str]:
        return self._lines(self.stderr)

    def out_records(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.out_lines]

    def err_records(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.err_lines]

    def records(self) -> list[dict[str, Any]]:
        return self.out_records() + self.err_records()
