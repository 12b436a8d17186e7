"""Shared response handling: status-code mapping and envelope unwrapping."""

from __future__ import annotations

from typing import Any

import httpx

from jaaz.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    JaazError,
    NotFoundError,
    RateLimitError,
    ServerError,
    ValidationError,
)

_STATUS_ERRORS: dict[int, tuple[type[JaazError], str]] = {
    400: (ValidationError, "Bad request"),
    401: (AuthenticationError, "Authentication failed"),
    403: (AuthorizationError, "Insufficient permissions"),
    404: (NotFoundError, "Resource not found"),
    409: (ConflictError, "Conflict"),
    429: (RateLimitError, "Rate limit exceeded"),
}


def extract_error_message(resp: httpx.Response, fallback: str) -> str:
    """Best-effort extraction of the server's error message.

    The API answers ``{"success": false, "message": ...}``; an
    ``{"error": {"message": ...}}`` body is accepted as well.
    """
    try:
        body = resp.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return fallback


def error_for_response(resp: httpx.Response) -> JaazError:
    """Map an error response to the matching SDK exception (not raised)."""
    code = resp.status_code
    if code in _STATUS_ERRORS:
        exc_type, fallback = _STATUS_ERRORS[code]
        return exc_type(extract_error_message(resp, fallback), status_code=code)
    if code >= 500:
        return ServerError(extract_error_message(resp, f"Server error: {code}"), status_code=code)
    return JaazError(extract_error_message(resp, f"Unexpected error: {code}"), status_code=code)


def raise_for_status(resp: httpx.Response) -> httpx.Response:
    """Return *resp* unchanged if it succeeded, otherwise raise the mapped error."""
    if resp.status_code >= 400:
        raise error_for_response(resp)
    return resp


def unwrap(resp: httpx.Response) -> Any:
    """Unwrap the API's ``{"data": ...}`` envelope; ``None`` for empty bodies."""
    if resp.status_code == 204 or not resp.content:
        return None
    try:
        body = resp.json()
    except ValueError as exc:
        raise JaazError("Response body is not JSON", status_code=resp.status_code) from exc
    if isinstance(body, dict):
        return body.get("data", body)
    return body
