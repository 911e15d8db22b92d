"""
Error taxonomy for the HealthSphere portal client.
"""

from typing import Iterable, Optional


class PortalError(Exception):
    """Base class for every error raised by the portal client."""


class ValidationError(PortalError):
    """Local input is missing or invalid. Never reaches the network."""

    def __init__(self, message: str, missing_fields: Iterable[str] = ()):
        super().__init__(message)
        self.message = message
        self.missing_fields = list(missing_fields)


class RemoteError(PortalError):
    """The backend answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthExpired(RemoteError):
    """The backend rejected the bearer credential (HTTP 401)."""

    def __init__(self, message: str = "Session expired, please sign in again."):
        super().__init__(message, status_code=401)


class AuthError(PortalError):
    """Authentication could not produce a valid session."""
