"""
Error taxonomy for the task/user API.

Every failure a request can end with is one of these exceptions. Each
class carries the HTTP status and the envelope message it is reported
with, so route handlers never map errors by hand.

    ValidationError   400  missing/invalid fields, referenced entity absent
    InvalidParameter  400  malformed list query parameter
    DuplicateKey      400  unique email violated
    NotFound          404  well-formed identifier with no record
    InvalidId         404  malformed identifier
    StoreUnavailable  500  the backing store failed or is not configured
"""

from __future__ import annotations


class ApiError(Exception):
    """Base class for errors reported to API clients."""

    status_code: int = 500
    message: str = "Server error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(ApiError):
    """Request payload is incomplete or references an absent entity."""

    status_code = 400
    message = "Bad request"


class InvalidParameter(ValidationError):
    """A query-string parameter could not be decoded or is unsupported."""

    def __init__(self, parameter: str, reason: str | None = None) -> None:
        detail = f"Invalid {parameter} parameter"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)
        self.parameter = parameter


class DuplicateKey(ApiError):
    """A unique field (user email) already exists."""

    status_code = 400
    message = "Bad request"


class NotFound(ApiError):
    """The identifier is well formed but no record carries it."""

    status_code = 404
    message = "Not found"


class InvalidId(NotFound):
    """The identifier is not a valid record identifier."""


class StoreUnavailable(ApiError):
    """The backing store rejected or could not serve the operation."""
