"""Pure router and helper functions for the generate/fix loop.

All functions are stateless and only read the loop state.
"""

from sitesmith.models import AttemptOutcome, CommitMode
from sitesmith.orchestrator.state import LoopState


def has_attempts_left(state: LoopState) -> bool:
    """True while another generation call fits in the attempt budget."""
    return state["attempt_number"] < state["max_attempts"]


def attempt_failed(state: LoopState) -> bool:
    attempt = state["pending_attempt"]
    return attempt is not None and attempt.outcome == AttemptOutcome.FAILURE


def route_after_generate(state: LoopState) -> str:
    """Router for the conditional edge leaving generate_node.

    Returns:
        "failed" on a fatal error or when a failed generation used the last
        attempt, "retry" when a failed generation can be retried, otherwise
        "commit" or "build" depending on the commit mode.
    """
    if state["fatal"]:
        return "failed"
    if attempt_failed(state):
        return "retry" if has_attempts_left(state) else "failed"
    if state["commit_mode"] == CommitMode.BEFORE_BUILD:
        return "commit"
    return "build"


def route_after_commit(state: LoopState) -> str:
    """Router for the conditional edge leaving commit_node.

    Returns:
        "failed" when the commit failed, "ready" when the build already
        succeeded (commit after build), otherwise "build".
    """
    if state["fatal"]:
        return "failed"
    if state["build_succeeded"]:
        return "ready"
    return "build"


def route_after_build(state: LoopState) -> str:
    """Router for the conditional edge leaving build_node.

    Returns:
        "commit" or "ready" on success, "retry" on a failure with attempts
        left, "failed" otherwise.
    """
    if state["fatal"]:
        return "failed"
    if state["build_succeeded"]:
        if state["commit_mode"] == CommitMode.AFTER_BUILD:
            return "commit"
        return "ready"
    if has_attempts_left(state):
        return "retry"
    return "failed"


def commit_message(state: LoopState) -> str:
    """Commit message for the file set produced by the current attempt."""
    if state["attempt_number"] <= 1:
        return "Initial site generation"
    return f"Fix build errors (attempt {state['attempt_number']})"
