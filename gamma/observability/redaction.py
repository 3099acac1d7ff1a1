"""Field redaction for log records.

Masks top-level fields whose names are on a denylist before a record leaves
the process. Exceptions under ``err`` are normalized instead of masked so
stack traces stay readable.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from structlog.types import EventDict, WrappedLogger

from gamma.observability.errors import serialize_error

REDACTED = "[REDACTED]"
ERROR_KEY = "err"

# Exact top-level key names (O(1) lookup)
DEFAULT_REDACT_PATHS: tuple[str, ...] = (
    "authorization",
    "cookie",
    "password",
    "token",
    "accessToken",
    "refreshToken",
    "apiKey",
    "access_token",
    "refresh_token",
    "api_key",
)

# Record envelope keys owned by the logger; never masked in emitted records
PROTECTED_KEYS: frozenset[str] = frozenset(
    {"level", "msg", "timestamp", "service", "env", "version"}
)


def resolve_redact_paths(
    redact_paths: Iterable[str] | None = None,
    extend: bool = False,
) -> frozenset[str]:
    """Resolve the effective denylist.

    Args:
        redact_paths: Caller-supplied field names, or None for the defaults
        extend: Add ``redact_paths`` to the defaults instead of replacing them

    Returns:
        Frozen set of field names to mask
    """
    if redact_paths is None:
        return frozenset(DEFAULT_REDACT_PATHS)
    if extend:
        return frozenset(DEFAULT_REDACT_PATHS).union(redact_paths)
    return frozenset(redact_paths)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def redact(
    record: Mapping[str, Any],
    redact_paths: Iterable[str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``record`` with denylisted fields masked.

    Args:
        record: Structured log record
        redact_paths: Field names to mask; None applies the defaults

    Returns:
        New dict; ``record`` is not modified
    """
    paths = (
        redact_paths
        if isinstance(redact_paths, frozenset)
        else resolve_redact_paths(redact_paths)
    )
    result = dict(record)

    for key in paths:
        if key == ERROR_KEY or key not in result:
            continue
        if not _is_empty(result[key]):
            result[key] = REDACTED

    if isinstance(result.get(ERROR_KEY), BaseException):
        result[ERROR_KEY] = serialize_error(result[ERROR_KEY])

    return result


class Redactor:
    """Processor that masks denylisted fields in log events.

    Envelope keys in PROTECTED_KEYS are dropped from the denylist.
    """

    def __init__(self, redact_paths: Iterable[str] | None = None) -> None:
        self.redact_paths = resolve_redact_paths(redact_paths) - PROTECTED_KEYS

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        """Redact the event dictionary."""
        return redact(event_dict, self.redact_paths)
