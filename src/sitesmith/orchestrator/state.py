"""State definition for the generate/commit/build loop."""

import operator
from typing import Annotated, TypedDict

from sitesmith.models import BuildAttempt, CommitMode, FileSet

DEFAULT_MAX_ATTEMPTS = 3
MAX_ATTEMPTS_LIMIT = 10
DEFAULT_BRANCH = "main"


class LoopState(TypedDict):
    """State for one run of the generate/fix loop.

    ``errors`` accumulates across nodes; all other fields are overwritten.
    """

    # Input
    run_id: str
    prompt: str
    skill: str | None
    max_attempts: int
    commit_mode: CommitMode
    owner: str | None
    repo: str | None
    branch: str

    # Generation
    attempt_number: int
    file_set: FileSet | None
    error_excerpt: str | None

    # Outcome of the attempt in flight, sealed by retry/ready/failed nodes
    pending_attempt: BuildAttempt | None
    build_succeeded: bool
    artifact_path: str | None
    commit_id: str | None

    # Failure bookkeeping
    last_error: str | None
    fatal: bool

    errors: Annotated[list[str], operator.add]


def make_initial_state(
    run_id: str,
    prompt: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    commit_mode: CommitMode | str = CommitMode.BEFORE_BUILD,
    owner: str | None = None,
    repo: str | None = None,
    branch: str = DEFAULT_BRANCH,
    skill: str | None = None,
) -> LoopState:
    """Create the initial loop state.

    Args:
        run_id: Registry key of the run.
        prompt: The user's description of the site.
        max_attempts: Generation attempts allowed, clamped to 1..MAX_ATTEMPTS_LIMIT.
        commit_mode: Where the commit step sits relative to the build.
        owner: Repository owner; required unless commits are disabled.
        repo: Repository name; required unless commits are disabled.
        branch: Branch the commits advance.
        skill: Skill name passed to the generator.

    Returns:
        LoopState dict with all fields initialised to defaults.
    """
    clamped_attempts = max(1, min(max_attempts, MAX_ATTEMPTS_LIMIT))
    return {
        "run_id": run_id,
        "prompt": prompt,
        "skill": skill,
        "max_attempts": clamped_attempts,
        "commit_mode": CommitMode(commit_mode),
        "owner": owner,
        "repo": repo,
        "branch": branch,
        "attempt_number": 0,
        "file_set": None,
        "error_excerpt": None,
        "pending_attempt": None,
        "build_succeeded": False,
        "artifact_path": None,
        "commit_id": None,
        "last_error": None,
        "fatal": False,
        "errors": [],
    }
