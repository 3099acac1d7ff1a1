"""API response models."""

from gamma.api.models.errors import ErrorBody, ErrorCode, ErrorResponse

__all__ = ["ErrorBody", "ErrorCode", "ErrorResponse"]
