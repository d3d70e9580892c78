"""Service configuration loaded from environment variables."""

import os
from pathlib import Path
from typing import Literal, Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sitesmith.exceptions import ConfigError
from sitesmith.models import CommitMode

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_REPO_PREFIX = "ai-site-"
DEFAULT_BUILDS_DIR = "./builds"
DEFAULT_PORT = 3000
MAX_ATTEMPTS_LIMIT = 10

# Safe keys allowed in config output (no secrets)
_SAFE_CONFIG_KEYS = frozenset({
    "github_owner", "owner_type", "github_api_url", "request_timeout_ms",
    "repo_prefix", "model", "max_attempts", "commit_mode",
    "build_timeout_seconds", "builds_dir", "work_root", "max_workers", "port",
})

# env var -> field name
_ENV_FIELDS = {
    "GITHUB_TOKEN": "github_token",
    "GITHUB_OWNER": "github_owner",
    "GITHUB_OWNER_TYPE": "owner_type",
    "GITHUB_API_URL": "github_api_url",
    "GITHUB_REQUEST_TIMEOUT_MS": "request_timeout_ms",
    "GITHUB_REPO_PREFIX": "repo_prefix",
    "ANTHROPIC_API_KEY": "anthropic_api_key",
    "OPENAI_API_KEY": "openai_api_key",
    "SITESMITH_MODEL": "model",
    "SITESMITH_MAX_ATTEMPTS": "max_attempts",
    "SITESMITH_COMMIT_MODE": "commit_mode",
    "SITESMITH_BUILD_TIMEOUT": "build_timeout_seconds",
    "SITESMITH_BUILDS_DIR": "builds_dir",
    "SITESMITH_WORK_DIR": "work_root",
    "SITESMITH_WORKERS": "max_workers",
    "VERCEL_TOKEN": "vercel_token",
    "WHATSAPP_VERIFY_TOKEN": "whatsapp_verify_token",
    "WHATSAPP_ACCESS_TOKEN": "whatsapp_access_token",
    "PORT": "port",
}


class ServiceConfig(BaseModel):
    """Everything the service needs to run, resolved once at startup."""

    model_config = ConfigDict(frozen=True)

    github_token: str | None = None
    github_owner: str | None = None
    owner_type: Literal["user", "org"] = "user"
    github_api_url: str = "https://api.github.com"
    request_timeout_ms: int = Field(default=20_000, gt=0)
    repo_prefix: str = DEFAULT_REPO_PREFIX

    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    model: str = DEFAULT_MODEL

    max_attempts: int = 3
    commit_mode: CommitMode = CommitMode.BEFORE_BUILD
    build_timeout_seconds: int = Field(default=600, gt=0)
    builds_dir: Path = Path(DEFAULT_BUILDS_DIR)
    work_root: Path | None = None
    max_workers: int = Field(default=4, ge=1)

    vercel_token: str | None = None
    whatsapp_verify_token: str | None = None
    whatsapp_access_token: str | None = None
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)

    @field_validator("max_attempts")
    @classmethod
    def clamp_attempts(cls, value: int) -> int:
        return max(1, min(value, MAX_ATTEMPTS_LIMIT))

    @property
    def github_enabled(self) -> bool:
        return bool(self.github_token and self.github_owner)

    @property
    def github_org(self) -> str | None:
        """Organisation to create repositories under, if the owner is one."""
        return self.github_owner if self.owner_type == "org" else None

    def require_github(self) -> None:
        """Raise unless repository credentials are configured.

        Raises:
            ConfigError: If GITHUB_TOKEN or GITHUB_OWNER is missing.
        """
        missing = [
            name
            for name, value in (("GITHUB_TOKEN", self.github_token), ("GITHUB_OWNER", self.github_owner))
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    def safe_dump(self) -> dict:
        """Return the configuration without secrets, JSON-ready."""
        data = self.model_dump(mode="json")
        return {key: value for key, value in data.items() if key in _SAFE_CONFIG_KEYS}


def load_config(env: Mapping[str, str] | None = None) -> ServiceConfig:
    """Build a ServiceConfig from ``env`` (defaults to os.environ after .env).

    Empty values are treated as unset.

    Raises:
        ConfigError: If a value cannot be parsed or is out of range.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    values = {
        field: env[var].strip()
        for var, field in _ENV_FIELDS.items()
        if env.get(var) and env[var].strip()
    }
    if "owner_type" in values:
        values["owner_type"] = values["owner_type"].lower()

    try:
        return ServiceConfig(**values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{_env_name(str(err['loc'][0]))}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from exc


def _env_name(field: str) -> str:
    for var, name in _ENV_FIELDS.items():
        if name == field:
            return var
    return field
