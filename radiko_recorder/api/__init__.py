"""
radiko API Layer.

This package handles all communication with radiko: the token handshake,
manifest resolution and the shared HTTP client.
"""

from .auth import AuthSession, AuthState, SessionToken
from .client import RadikoAPIClient
from .keys import derive_partial_key, lookup_header
from .playlist import ManifestResolver

__all__ = [
    "AuthSession",
    "AuthState",
    "ManifestResolver",
    "RadikoAPIClient",
    "SessionToken",
    "derive_partial_key",
    "lookup_header",
]
