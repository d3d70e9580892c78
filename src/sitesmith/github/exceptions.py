"""Exceptions for repository host operations.

Status codes are mapped to these kinds once, inside ``GitHubClient``; nothing
above the client inspects raw HTTP statuses.
"""

from sitesmith.exceptions import SitesmithError


class RemoteError(SitesmithError):
    """Base exception for repository host failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteNotFound(RemoteError):
    """Raised when the requested ref, commit, file or repository does not exist."""


class RemoteConflict(RemoteError):
    """Raised when the host rejects a write because of conflicting state."""


class RemoteUnavailable(RemoteError):
    """Raised on transport errors, request timeouts and 5xx responses."""


class RemoteRequestError(RemoteError):
    """Raised on any other rejected request (auth, validation, rate limits)."""


class PartialBlobFailure(RemoteError):
    """Raised when uploading the blob for a specific path fails."""

    def __init__(self, path: str, cause: Exception) -> None:
        super().__init__(
            f"Failed to create blob for '{path}': {cause}",
            status_code=getattr(cause, "status_code", None),
        )
        self.path = path
        self.cause = cause
