"""Error normalization and error-level logging helpers.

``serialize_error`` turns any raised (or merely passed) value into a plain,
JSON-friendly dict so that ``logger.error(err=...)`` records keep a usable
stack without leaking arbitrary objects into the output.
"""

import traceback
from typing import TYPE_CHECKING, Any

from gamma.observability.models import LogContext

if TYPE_CHECKING:
    from gamma.observability.logging import Logger

UNKNOWN_ERROR = "UnknownError"
UNHANDLED_ERROR_MESSAGE = "unhandled error"

_PRIMITIVES = (str, bytes, int, float, bool, type(None))
_MAX_CAUSE_DEPTH = 8


def safe_str(value: Any) -> str:
    """``str(value)`` that never raises."""
    try:
        return str(value)
    except Exception:  # noqa: BLE001 - __str__ of arbitrary objects
        return f"<unprintable {type(value).__name__}>"


def _format_stack(exc: BaseException) -> str:
    try:
        return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    except Exception:  # noqa: BLE001
        return f"{type(exc).__name__}: {safe_str(exc)}"


def _serialize_exception(exc: BaseException, depth: int) -> dict[str, Any]:
    serialized: dict[str, Any] = {
        "name": type(exc).__name__,
        "message": safe_str(exc),
        "stack": _format_stack(exc),
    }

    # "raise ... from None" hides the implicit context
    if exc.__cause__ is not None:
        cause = exc.__cause__
    elif exc.__suppress_context__:
        cause = None
    else:
        cause = exc.__context__
    if cause is not None and depth < _MAX_CAUSE_DEPTH:
        serialized["cause"] = _serialize_exception(cause, depth + 1)

    # Extra public attributes set on the exception instance
    for key, value in getattr(exc, "__dict__", {}).items():
        if key.startswith("_") or key in serialized:
            continue
        serialized[key] = value

    return serialized


def serialize_error(error: Any) -> dict[str, Any]:
    """Normalize an arbitrary value into ``{name, message, stack?, ...}``.

    Args:
        error: An exception, any other object, or a primitive

    Returns:
        Serialized form. Exceptions carry ``stack`` and ``cause``;
        non-primitive objects carry ``originalError``.
    """
    if isinstance(error, BaseException):
        return _serialize_exception(error, depth=0)

    if isinstance(error, _PRIMITIVES):
        return {"name": UNKNOWN_ERROR, "message": safe_str(error)}

    return {
        "name": UNKNOWN_ERROR,
        "message": safe_str(error),
        "originalError": error,
    }


class ErrorLogger:
    """Emits normalized errors through a Logger at ``error`` level."""

    def __init__(self, logger: "Logger") -> None:
        self._logger = logger

    @property
    def logger(self) -> "Logger":
        return self._logger

    def log_error(
        self,
        error: Any,
        message: str,
        context: LogContext | None = None,
    ) -> None:
        """Log ``error`` serialized under ``err`` with ``message``."""
        fields: LogContext = {**(context or {}), "err": serialize_error(error)}
        self._logger.log_structured("error", fields, message)

    def log_unhandled_error(self, error: Any, context: LogContext | None = None) -> None:
        """Log an error nobody handled, as ``"unhandled error"``."""
        self.log_error(error, UNHANDLED_ERROR_MESSAGE, context)

    def log_http_error(
        self,
        error: Any,
        status_code: int,
        path: str,
        context: LogContext | None = None,
    ) -> None:
        """Log an error that produced an HTTP error response.

        Args:
            error: The error that caused the response
            status_code: HTTP status code returned
            path: Request path
            context: Additional fields
        """
        self.log_error(
            error,
            f"HTTP {status_code} error",
            {**(context or {}), "statusCode": status_code, "path": path},
        )

    def child(self, bindings: LogContext) -> "ErrorLogger":
        """Return an ErrorLogger writing through a child of this logger."""
        return ErrorLogger(self._logger.child(bindings))
