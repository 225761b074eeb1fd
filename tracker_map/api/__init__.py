"""Client for the tracker server REST API."""

from .client import API_KEY_HEADER, TrackerApiClient
from .errors import AuthorizationError, MissingCredentialError, TrackerApiError, TransportError

__all__ = [
    "API_KEY_HEADER",
    "AuthorizationError",
    "MissingCredentialError",
    "TrackerApiClient",
    "TrackerApiError",
    "TransportError",
]
