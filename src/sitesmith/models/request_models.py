"""Request bodies accepted by the HTTP API."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from sitesmith.models.change_models import ChangeOperation, ChangeResult
from sitesmith.models.run_models import CommitMode, RunOptions


class RunRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(min_length=1)
    repo_name: str | None = Field(default=None, alias="repoName")
    private: bool = False
    skill: str | None = None
    max_attempts: int | None = Field(default=None, alias="maxAttempts", ge=1)
    commit_mode: CommitMode | None = Field(default=None, alias="commitMode")

    def to_options(self) -> RunOptions:
        return RunOptions(
            repo_name=self.repo_name,
            private=self.private,
            skill=self.skill,
            max_attempts=self.max_attempts,
            commit_mode=self.commit_mode,
        )


class ChangesRequest(BaseModel):
    message: str = Field(min_length=1)
    operations: List[ChangeOperation] = Field(min_length=1)


class ChangesResponse(BaseModel):
    ok: bool
    results: List[ChangeResult]
