"""Run lifecycle service."""

from sitesmith.service.exceptions import RunNotCommittableError, RunNotFoundError, ServiceError
from sitesmith.service.naming import generate_repo_name, sanitize_repo_name
from sitesmith.service.runs import RunService

__all__ = [
    "RunNotCommittableError",
    "RunNotFoundError",
    "RunService",
    "ServiceError",
    "generate_repo_name",
    "sanitize_repo_name",
]
