"""Errors raised by the tracker server client."""

from __future__ import annotations

from typing import Optional


class TrackerApiError(RuntimeError):
    """Base class for failures talking to the tracker server."""


class MissingCredentialError(TrackerApiError):
    """No API key was supplied, so no request can be made."""


class TransportError(TrackerApiError):
    """A request did not complete or returned a non-success status."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class AuthorizationError(TransportError):
    """The server rejected the API key (HTTP 401)."""


__all__ = [
    "AuthorizationError",
    "MissingCredentialError",
    "TrackerApiError",
    "TransportError",
]
