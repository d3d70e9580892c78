"""Run lifecycle, build attempt and commit models."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RunStatus(str, Enum):
    """Coarse run lifecycle reported to status readers."""

    PENDING = "pending"
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({RunStatus.READY, RunStatus.FAILED})

# Statuses may only move forward in this order; READY and FAILED share a rank.
STATUS_RANK = {
    RunStatus.PENDING: 0,
    RunStatus.BUILDING: 1,
    RunStatus.READY: 2,
    RunStatus.FAILED: 2,
}


class RunPhase(str, Enum):
    """Position of a run inside the generate/commit/build state machine."""

    PENDING = "pending"
    GENERATING = "generating"
    COMMITTING = "committing"
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"


class CommitMode(str, Enum):
    """Where the commit step sits relative to the build step."""

    BEFORE_BUILD = "before_build"
    AFTER_BUILD = "after_build"
    DISABLED = "disabled"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class BuildAttempt(BaseModel):
    """One sealed generate-or-build cycle of a run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    attempt_number: int
    work_dir: str | None = None
    outcome: AttemptOutcome
    error_excerpt: str | None = None
    duration_ms: int = 0
    stage: Literal["generate", "build"] = "build"


class RunState(BaseModel):
    """Snapshot of a run as held by the RunRegistry."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    status: RunStatus = RunStatus.PENDING
    phase: RunPhase = RunPhase.PENDING
    build_error: str | None = None
    attempts: tuple[BuildAttempt, ...] = ()
    artifact_path: str | None = None

    # Metadata
    prompt: str = ""
    skill: str | None = None
    owner: str | None = None
    repo: str | None = None
    repo_url: str | None = None
    branch: str | None = None
    commit_id: str | None = None
    deploy_url: str | None = None
    deploy_error: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class CommitPlan(BaseModel):
    """Everything needed to turn uploaded blobs into one commit on a branch.

    ``base_tree_id`` and ``parent_commit_id`` are None exactly when the branch
    does not yet exist remotely.
    """

    model_config = ConfigDict(frozen=False)

    owner: str
    repo: str
    branch: str
    base_tree_id: str | None = None
    parent_commit_id: str | None = None
    blobs: list[tuple[str, str]] = Field(default_factory=list)
    deletions: list[str] = Field(default_factory=list)


class CommitResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    commit_id: str
    branch_advanced: Literal["created", "updated"]


class RepoInfo(BaseModel):
    """Subset of the repository payload the service needs."""

    model_config = ConfigDict(frozen=True)

    name: str
    html_url: str
    default_branch: str
    owner: str = ""


class RunOptions(BaseModel):
    """Caller-supplied options for starting a run."""

    model_config = ConfigDict(frozen=True)

    repo_name: str | None = None
    private: bool = False
    skill: str | None = None
    max_attempts: int | None = None
    commit_mode: CommitMode | None = None
    wait: bool = False


class BuildOutcome(BaseModel):
    """Result of a successful build."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    attempt_number: int
    work_dir: str
    artifact_path: str
    output: str = ""
    duration_ms: int = 0
