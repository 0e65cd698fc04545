"""
Error taxonomy shared by the vault, the cloud clients and the sync orchestrator.

Clients raise these upward; the sync orchestrator is the one place that
converts them into a failed sync job.
"""

from __future__ import annotations


class TonieSyncError(Exception):
    """Base class for every error raised by this package."""


class InvalidArgument(TonieSyncError, ValueError):
    """Raised for caller errors before any network call is made."""


class NotFound(TonieSyncError, LookupError):
    """Raised when a household, device, chapter, content item or job is absent."""


class CorruptCiphertext(TonieSyncError):
    """Raised when a stored credential fails authenticated decryption."""


class Cancelled(TonieSyncError):
    """Raised when an operation was cancelled before it could finish."""


class _RemoteError(TonieSyncError):
    """Carry the remote status code and body for diagnostics."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        detail = message
        if status_code is not None:
            detail = f"{message} (HTTP {status_code})"
        if body:
            detail = f"{detail}: {body}"
        super().__init__(detail)


class AuthenticationFailed(_RemoteError):
    """Raised when the token endpoint rejects the grant or a bearer token is refused."""


class UploadRejected(_RemoteError):
    """Raised when the object storage presigned POST is rejected."""


class RemoteProtocolError(_RemoteError):
    """Raised for any other non-2xx response from the cloud API."""


__all__ = [
    "AuthenticationFailed",
    "Cancelled",
    "CorruptCiphertext",
    "InvalidArgument",
    "NotFound",
    "RemoteProtocolError",
    "TonieSyncError",
    "UploadRejected",
]
