"""
JSON response envelope.

Every body the API returns has the shape ``{"message": str, "data": ...}``;
204 responses carry no body at all.
"""

from __future__ import annotations

from typing import Any

from flask import Response, jsonify

from taskhub.errors import ApiError

STATUS_MESSAGES = {
    200: "OK",
    201: "Created",
    400: "Bad request",
    404: "Not found",
    405: "Method not allowed",
    500: "Server error",
}


def envelope(data: Any, status: int = 200, message: str | None = None) -> tuple[Response, int]:
    """Wrap ``data`` in the standard envelope."""
    return jsonify({
        "message": message or STATUS_MESSAGES.get(status, "OK"),
        "data": data,
    }), status


def error_envelope(status: int, detail: str, message: str | None = None) -> tuple[Response, int]:
    """Build an error envelope whose data names the failure."""
    return envelope({"error": detail}, status, message or STATUS_MESSAGES.get(status))


def api_error(error: ApiError) -> tuple[Response, int]:
    return error_envelope(error.status_code, error.detail, error.message)


def no_content() -> tuple[Response, int]:
    """Empty 204 response for deletes."""
    return Response(status=204), 204
