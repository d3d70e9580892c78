"""Exceptions for run service operations."""

from sitesmith.exceptions import SitesmithError


class ServiceError(SitesmithError):
    """Base exception for run service operations."""


class RunNotFoundError(ServiceError):
    """Raised when a run id is not known to the registry."""


class RunNotCommittableError(ServiceError):
    """Raised when changes target a run that has no repository."""
