"""Repository host integration: GitHub client and atomic committer."""

from sitesmith.github.client import GitHubClient
from sitesmith.github.committer import BlobTreeCommitter
from sitesmith.github.exceptions import (
    PartialBlobFailure,
    RemoteConflict,
    RemoteError,
    RemoteNotFound,
    RemoteRequestError,
    RemoteUnavailable,
)

__all__ = [
    "BlobTreeCommitter",
    "GitHubClient",
    "PartialBlobFailure",
    "RemoteConflict",
    "RemoteError",
    "RemoteNotFound",
    "RemoteRequestError",
    "RemoteUnavailable",
]
