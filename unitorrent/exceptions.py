"""Exception hierarchy for unitorrent.

Every error raised by the adapter layer derives from :class:`UnitorrentError`.
Transport failures from aiohttp (connection errors, timeouts) are not wrapped
and reach the caller unchanged.
"""

from __future__ import annotations

from typing import Any


class UnitorrentError(Exception):
    """Base exception for all unitorrent errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize unitorrent error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(UnitorrentError):
    """Configuration validation errors."""


class AdapterError(UnitorrentError):
    """Errors raised by a backend adapter."""


class RPCError(AdapterError):
    """A single normalized RPC-level failure.

    ``code`` is the structured error code when the backend supplied one
    (a JSON-RPC error code or an HTTP status), otherwise ``None``.
    """

    def __init__(
        self,
        message: str,
        code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize RPC error."""
        super().__init__(message, details)
        self.code = code

    def __str__(self) -> str:
        """Return string representation including the code."""
        base = super().__str__()
        if self.code is not None:
            return f"[{self.code}] {base}"
        return base


class SessionRenegotiationError(RPCError):
    """The daemon rejected the session token twice in a row."""


class AuthenticationError(RPCError):
    """The daemon refused the supplied credentials."""


class UnsupportedOperationError(AdapterError):
    """The backend does not support a whole feature family."""


class TorrentNotFoundError(AdapterError):
    """No torrent matched the requested identifier."""


class BackendDetectionError(AdapterError):
    """No known backend answered at the given URL."""
