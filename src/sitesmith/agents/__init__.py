"""Agent components for sitesmith."""

from sitesmith.agents.exceptions import (
    AgentError,
    BuildError,
    BuildTimeout,
    GenerationFailure,
    ProcessFailure,
    WriteFailure,
)
from sitesmith.agents.build_runner import BuildRunner
from sitesmith.agents.site_generator import GenerationContext, SiteGenerator

__all__ = [
    "AgentError",
    "BuildError",
    "BuildRunner",
    "BuildTimeout",
    "GenerationContext",
    "GenerationFailure",
    "ProcessFailure",
    "SiteGenerator",
    "WriteFailure",
]
