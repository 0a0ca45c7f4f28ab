"""Error taxonomy shared by the handshake service and the HTTP layer.

Each error carries the HTTP status it maps to and an optional message that
is safe to show to the client. Messages on 5xx errors are for the log
only and are never returned in a response.
"""

from __future__ import annotations


class ProxyError(RuntimeError):
    """Base class for errors raised by the handshake service."""

    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message


class ValidationError(ProxyError):
    """A required request field is missing."""

    status_code = 400


class NotFound(ProxyError):
    """No record exists for the requested token."""

    status_code = 404


class Conflict(ProxyError):
    """Duplicate upload, or the token was already acknowledged."""

    status_code = 403


class InternalError(ProxyError):
    """Storage failure or broken data integrity."""

    status_code = 500
