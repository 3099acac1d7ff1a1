"""Error response models for consistent API error handling."""

from enum import Enum

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Machine-readable error codes for API responses."""

    INVALID_REQUEST = "INVALID_REQUEST"
    """Request validation failed."""

    UNAUTHORIZED = "UNAUTHORIZED"
    """Authentication is missing or invalid."""

    NOT_FOUND = "NOT_FOUND"
    """The requested resource does not exist."""

    HTTP_ERROR = "HTTP_ERROR"
    """Any other HTTP error raised by a handler."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""


_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.NOT_FOUND,
    422: ErrorCode.INVALID_REQUEST,
    500: ErrorCode.INTERNAL_ERROR,
}


def error_code_for_status(status_code: int) -> ErrorCode:
    """Map an HTTP status code onto an ErrorCode."""
    return _STATUS_CODES.get(status_code, ErrorCode.HTTP_ERROR)


class ErrorBody(BaseModel):
    """Error body content for API error responses."""

    code: ErrorCode
    message: str
    request_id: str | None = Field(default=None, serialization_alias="requestId")


class ErrorResponse(BaseModel):
    """Standard error response format.

    Example:
        {
            "error": {
                "code": "NOT_FOUND",
                "message": "Image not found",
                "requestId": "5f0c..."
            }
        }
    """

    error: ErrorBody
