from typing import List

from pydantic import BaseModel, Field


class SkillMetadata(BaseModel):
    name: str
    version: str = "1.0.0"
    description: str
    author: str = "sitesmith"
    categories: List[str] = Field(default_factory=list)


class SkillSummary(BaseModel):
    """Public listing entry returned by the skills endpoint."""

    name: str
    description: str
    required_files: List[str]
