"""Repository naming helpers."""

import re
import uuid

DEFAULT_REPO_PREFIX = "ai-site-"
MAX_REPO_NAME_LENGTH = 50
SLUG_WORDS = 5

_INVALID_CHARS_RE = re.compile(r"[^a-z0-9-]+")
_EDGE_DASHES_RE = re.compile(r"^-+|-+$")
_REPEATED_DASHES_RE = re.compile(r"-{2,}")


def sanitize_repo_name(name: str) -> str:
    """Lowercase ``name`` and reduce it to dash-separated ``[a-z0-9]`` runs."""
    slug = _INVALID_CHARS_RE.sub("-", name.lower())
    slug = _EDGE_DASHES_RE.sub("", slug)
    slug = _REPEATED_DASHES_RE.sub("-", slug)
    return slug[:MAX_REPO_NAME_LENGTH]


def generate_repo_name(prompt: str, prefix: str = DEFAULT_REPO_PREFIX) -> str:
    """Build a unique repository name from the first words of ``prompt``.

    >>> generate_repo_name("A todo app for cats").startswith("ai-site-a-todo-app-for-cats-")
    True
    """
    slug = sanitize_repo_name(" ".join(prompt.split(" ")[:SLUG_WORDS])) or "run"
    short_id = str(uuid.uuid4()).split("-")[0]
    return f"{prefix}{slug}-{short_id}"
