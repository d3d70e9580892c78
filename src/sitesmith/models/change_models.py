"""Models for incremental repository changes applied to an existing run."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from sitesmith.models.file_models import FileEncoding


class UpsertOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["upsert"] = "upsert"
    path: str = Field(min_length=1)
    content: str
    encoding: FileEncoding = "utf8"


class DeleteOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["delete"] = "delete"
    path: str = Field(min_length=1)


ChangeOperation = Annotated[
    Union[UpsertOperation, DeleteOperation],
    Field(discriminator="op"),
]


class ChangeResult(BaseModel):
    """Outcome of one change operation, reported in submission order."""

    model_config = ConfigDict(frozen=True)

    path: str
    op: Literal["upsert", "delete"]
    action: Literal["created", "updated", "deleted", "failed", "skipped"]
    commit_id: str | None = None
    error: str | None = None
