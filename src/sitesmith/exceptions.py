"""Root exceptions shared across sitesmith packages.

Note: Names chosen to avoid collisions with stdlib and framework exceptions
(``ValidationError`` would shadow pydantic's, ``TimeoutError`` the builtin).
"""


class SitesmithError(Exception):
    """Base exception for all sitesmith operations."""


class InputValidationError(SitesmithError):
    """Raised when input is malformed; always raised before any side effect."""


class InternalInvariantViolation(SitesmithError):
    """Raised when a caller bug breaks an internal invariant. Never retried."""


class ConfigError(SitesmithError):
    """Raised when the service configuration is missing or invalid."""
