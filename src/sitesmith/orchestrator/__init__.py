"""LangGraph orchestrator package for the generate/fix loop."""

from sitesmith.orchestrator.exceptions import GraphBuildError, OrchestratorError
from sitesmith.orchestrator.graph import build_graph, recursion_limit_for, run_loop
from sitesmith.orchestrator.state import (
    DEFAULT_MAX_ATTEMPTS,
    MAX_ATTEMPTS_LIMIT,
    LoopState,
    make_initial_state,
)

__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "GraphBuildError",
    "LoopState",
    "MAX_ATTEMPTS_LIMIT",
    "OrchestratorError",
    "build_graph",
    "make_initial_state",
    "recursion_limit_for",
    "run_loop",
]
