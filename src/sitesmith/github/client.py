"""Thin httpx wrapper over the GitHub REST and Git Data APIs.

Every call goes through ``_request``, which maps HTTP statuses and transport
failures onto the closed set of ``RemoteError`` kinds. The client never
retries; retry policy belongs to the caller.
"""

import logging
from typing import Any

import httpx

from sitesmith.github.exceptions import (
    RemoteConflict,
    RemoteError,
    RemoteNotFound,
    RemoteRequestError,
    RemoteUnavailable,
)
from sitesmith.models import RepoInfo

logger = logging.getLogger(__name__)

# Constants
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_MS = 20_000
API_VERSION = "2022-11-28"
BLOB_FILE_MODE = "100644"
EMPTY_REPOSITORY_MESSAGE = "git repository is empty"


class GitHubClient:
    """Synchronous GitHub API client with tagged error mapping."""

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
            timeout=httpx.Timeout(timeout_ms / 1000),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Repositories

    def create_repo(
        self,
        name: str,
        private: bool = False,
        org: str | None = None,
    ) -> RepoInfo:
        """Create a repository with an initial commit on its default branch.

        Args:
            name: Repository name.
            private: Whether the repository is private.
            org: Organisation login; None creates it for the authenticated user.

        Returns:
            RepoInfo with name, html_url and default_branch.
        """
        path = f"/orgs/{org}/repos" if org else "/user/repos"
        data = self._request(
            "POST",
            path,
            json={"name": name, "private": private, "auto_init": True},
        )
        return RepoInfo(
            name=data["name"],
            html_url=data["html_url"],
            default_branch=data.get("default_branch") or "main",
            owner=(data.get("owner") or {}).get("login", ""),
        )

    def get_file_sha(self, owner: str, repo: str, path: str, ref: str) -> str | None:
        """Return the blob SHA of a file at ``ref``, or None when it does not exist.

        Directories and non-file entries are treated as missing.
        """
        try:
            data = self._request(
                "GET",
                f"/repos/{owner}/{repo}/contents/{path}",
                params={"ref": ref},
            )
        except RemoteNotFound:
            return None
        if isinstance(data, list) or data.get("type") != "file":
            return None
        return data["sha"]

    # ------------------------------------------------------------------
    # Git Data API

    def create_blob(self, owner: str, repo: str, content_base64: str) -> str:
        data = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": content_base64, "encoding": "base64"},
        )
        return data["sha"]

    def get_ref(self, owner: str, repo: str, branch: str) -> str:
        """Return the commit SHA the branch points at.

        Raises:
            RemoteNotFound: If the branch does not exist, including the
                empty-repository response GitHub reports as a conflict.
        """
        try:
            data = self._request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}")
        except RemoteConflict as exc:
            if EMPTY_REPOSITORY_MESSAGE in str(exc).lower():
                raise RemoteNotFound(str(exc), status_code=exc.status_code) from exc
            raise
        return data["object"]["sha"]

    def get_commit_tree(self, owner: str, repo: str, commit_sha: str) -> str:
        data = self._request("GET", f"/repos/{owner}/{repo}/git/commits/{commit_sha}")
        return data["tree"]["sha"]

    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: list[tuple[str, str | None]],
        base_tree: str | None = None,
    ) -> str:
        """Create a tree from ``(path, blob_sha)`` entries.

        A None blob SHA removes the path from ``base_tree``.
        """
        payload: dict[str, Any] = {
            "tree": [
                {"path": path, "mode": BLOB_FILE_MODE, "type": "blob", "sha": sha}
                for path, sha in entries
            ]
        }
        if base_tree:
            payload["base_tree"] = base_tree
        data = self._request("POST", f"/repos/{owner}/{repo}/git/trees", json=payload)
        return data["sha"]

    def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree_sha: str,
        parents: list[str],
    ) -> str:
        data = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree_sha, "parents": parents},
        )
        return data["sha"]

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    def update_ref(
        self,
        owner: str,
        repo: str,
        branch: str,
        sha: str,
        force: bool = False,
    ) -> None:
        """Move ``branch`` to ``sha``.

        Without ``force`` the host rejects non-fast-forward updates, which
        surfaces as RemoteConflict.
        """
        self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
            json={"sha": sha, "force": force},
        )

    # ------------------------------------------------------------------
    # Helpers

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise RemoteUnavailable(f"{method} {path} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"{method} {path} failed: {exc}") from exc

        if response.is_success:
            if not response.content:
                return {}
            return response.json()

        raise self._map_error(method, path, response)

    @staticmethod
    def _map_error(method: str, path: str, response: httpx.Response) -> RemoteError:
        status = response.status_code
        detail = _error_message(response)
        message = f"{method} {path} -> HTTP {status}: {detail}"
        logger.debug("GitHub request rejected: %s", message)
        if status == 404:
            return RemoteNotFound(message, status_code=status)
        if status in (409, 422):
            return RemoteConflict(message, status_code=status)
        if status >= 500:
            return RemoteUnavailable(message, status_code=status)
        return RemoteRequestError(message, status_code=status)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase
