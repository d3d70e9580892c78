"""Exceptions for agent operations."""

from sitesmith.exceptions import SitesmithError


class AgentError(SitesmithError):
    """Base exception for all agent operations."""


class GenerationFailure(AgentError):
    """Raised when the generator produces unusable or incomplete output."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class BuildError(AgentError):
    """Base exception for build execution failures.

    ``raw_output`` carries whatever the build produced so the error
    extractor can distil it. ``work_dir`` is the attempt's (already removed)
    working directory, set by the runner.
    """

    def __init__(self, message: str, raw_output: str = "", work_dir: str | None = None) -> None:
        super().__init__(message)
        self.raw_output = raw_output or message
        self.work_dir = work_dir


class WriteFailure(BuildError):
    """Raised when files cannot be materialised into the working directory."""


class ProcessFailure(BuildError):
    """Raised when a build command exits non-zero."""

    def __init__(self, command: list[str], exit_code: int, raw_output: str) -> None:
        super().__init__(
            f"{' '.join(command)} exited with code {exit_code}",
            raw_output=raw_output,
        )
        self.command = command
        self.exit_code = exit_code


class BuildTimeout(BuildError):
    """Raised when a build command exceeds its wall-clock ceiling."""

    def __init__(self, command: list[str], timeout_seconds: float, raw_output: str = "") -> None:
        message = f"{' '.join(command)} timed out after {timeout_seconds}s"
        super().__init__(message, raw_output=f"{raw_output}\n{message}".strip())
        self.command = command
        self.timeout_seconds = timeout_seconds
