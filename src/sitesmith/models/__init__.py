"""Data models for sitesmith."""

from sitesmith.models.change_models import (
    ChangeOperation,
    ChangeResult,
    DeleteOperation,
    UpsertOperation,
)
from sitesmith.models.file_models import (
    FileEncoding,
    FileEntry,
    FileSet,
    normalize_file_set,
    normalize_path,
)
from sitesmith.models.run_models import (
    STATUS_RANK,
    TERMINAL_STATUSES,
    AttemptOutcome,
    BuildAttempt,
    BuildOutcome,
    CommitMode,
    CommitPlan,
    CommitResult,
    RepoInfo,
    RunOptions,
    RunPhase,
    RunState,
    RunStatus,
)
from sitesmith.models.request_models import ChangesRequest, ChangesResponse, RunRequest
from sitesmith.models.skill_models import SkillMetadata, SkillSummary

__all__ = [
    "STATUS_RANK",
    "TERMINAL_STATUSES",
    "AttemptOutcome",
    "BuildAttempt",
    "BuildOutcome",
    "ChangeOperation",
    "ChangeResult",
    "ChangesRequest",
    "ChangesResponse",
    "CommitMode",
    "CommitPlan",
    "CommitResult",
    "DeleteOperation",
    "FileEncoding",
    "FileEntry",
    "FileSet",
    "RepoInfo",
    "RunOptions",
    "RunPhase",
    "RunRequest",
    "RunState",
    "RunStatus",
    "SkillMetadata",
    "SkillSummary",
    "UpsertOperation",
    "normalize_file_set",
    "normalize_path",
]
