"""Exception hierarchy for the Jaaz Python SDK."""

from __future__ import annotations


class JaazError(Exception):
    """Base exception for all Jaaz SDK errors.

    ``status_code`` is the HTTP status of the response that caused the error,
    or ``None`` when no response was received.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(JaazError):
    """Raised when the request never produced a response (network failure, timeout)."""


class ValidationError(JaazError):
    """Raised when the server rejects input as invalid (400)."""


class AuthenticationError(JaazError):
    """Raised when authentication fails (401)."""


class AuthorizationError(JaazError):
    """Raised when the user lacks permission (403)."""


class NotFoundError(JaazError):
    """Raised when a requested resource does not exist (404)."""


class ConflictError(JaazError):
    """Raised on duplicate or conflicting resources (409)."""


class RateLimitError(JaazError):
    """Raised when the server throttles the client (429)."""


class ServerError(JaazError):
    """Raised on unexpected server-side errors (5xx)."""


class RefreshError(AuthenticationError):
    """Raised when the refresh endpoint rejects the refresh token or returns a malformed body."""


class SessionExpiredError(AuthenticationError):
    """Raised to every waiting caller when the session could not be renewed.

    The underlying refresh failure is available as ``__cause__``. Hosts
    should treat this the same as a sign-out.
    """
