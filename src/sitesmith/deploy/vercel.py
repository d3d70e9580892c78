"""Vercel project creation for generated sites.

Creating a project linked to a GitHub repository triggers the first
deployment from its default branch. The Vercel GitHub integration must be
installed on the account.
"""

import logging

import httpx
from pydantic import BaseModel, ConfigDict

from sitesmith.exceptions import SitesmithError

logger = logging.getLogger(__name__)

VERCEL_API_URL = "https://api.vercel.com"
DEFAULT_TIMEOUT_SECONDS = 20.0
INSTALL_COMMAND = "npm install --legacy-peer-deps"


class DeploymentError(SitesmithError):
    """Raised when the deployment host rejects or cannot process a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VercelProject(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    name: str
    url: str


class VercelDeployer:
    """Creates Vercel projects linked to GitHub repositories."""

    def __init__(
        self,
        token: str,
        api_url: str = VERCEL_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def create_project(self, project_name: str, owner: str, repo: str) -> VercelProject:
        """Create a Next.js project for ``owner/repo``.

        Raises:
            DeploymentError: On authentication, scope, naming or transport failures.
        """
        try:
            response = self._client.post(
                "/v9/projects",
                json={
                    "name": project_name,
                    "gitRepository": {"type": "github", "repo": f"{owner}/{repo}"},
                    "framework": "nextjs",
                    "installCommand": INSTALL_COMMAND,
                },
            )
        except httpx.HTTPError as exc:
            raise DeploymentError(f"Vercel: request failed: {exc}") from exc

        status = response.status_code
        if status == 401:
            raise DeploymentError("Vercel: Invalid token, authentication failed.", status)
        if status == 403:
            raise DeploymentError("Vercel: Token lacks the required scope.", status)
        if status in (400, 409):
            raise DeploymentError(
                _error_message(response) or f"Vercel: Project name conflict (HTTP {status}).",
                status,
            )
        if not response.is_success:
            raise DeploymentError(_error_message(response) or f"Vercel: HTTP {status}.", status)

        data = response.json()
        project = VercelProject(
            project_id=data["id"],
            name=data["name"],
            url=f"https://{data['name']}.vercel.app",
        )
        logger.info("Created Vercel project %s for %s/%s", project.name, owner, repo)
        return project


def _error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        return str(message) if message else None
    return None
