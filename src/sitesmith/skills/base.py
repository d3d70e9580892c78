from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models.skill_models import SkillMetadata


@runtime_checkable
class SiteSkill(Protocol):
    """A site template: what files the generator must return and how to ask for them."""

    metadata: SkillMetadata
    required_files: list[str]
    allow_extra_files: bool

    def get_system_prompt(self) -> str:
        """System prompt describing design and technical rules for this template."""


class StaticSiteSkill:
    """SiteSkill backed by fixed strings."""

    def __init__(
        self,
        metadata: SkillMetadata,
        system_prompt: str,
        required_files: list[str],
        allow_extra_files: bool = False,
    ) -> None:
        self.metadata = metadata
        self.required_files = list(required_files)
        self.allow_extra_files = allow_extra_files
        self._system_prompt = system_prompt.strip()

    def get_system_prompt(self) -> str:
        return self._system_prompt
