from __future__ import annotations

from typing import Dict, List

from ..exceptions import InputValidationError
from ..models.skill_models import SkillSummary
from .base import SiteSkill
from .catalog import BUILTIN_SKILLS

DEFAULT_SKILL = "minimal"


class SkillRegistry:
    _instance = None
    _skills: Dict[str, SiteSkill] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def get_instance(cls) -> "SkillRegistry":
        return cls()

    def register(self, skill: SiteSkill) -> None:
        self._skills[self._normalize_name(skill.metadata.name)] = skill

    def has_skill(self, name: str) -> bool:
        return self._normalize_name(name) in self._skills

    def get(self, name: str | None = None) -> SiteSkill:
        """Return the named skill, or the default one when ``name`` is empty.

        Raises:
            InputValidationError: If the skill is unknown.
        """
        key = self._normalize_name(name or DEFAULT_SKILL)
        skill = self._skills.get(key)
        if skill is None:
            available = ", ".join(sorted(self._skills))
            raise InputValidationError(f'Unknown skill "{name}". Available: {available}')
        return skill

    def list_skills(self) -> List[SkillSummary]:
        return [
            SkillSummary(
                name=skill.metadata.name,
                description=skill.metadata.description,
                required_files=list(skill.required_files),
            )
            for skill in self._skills.values()
        ]

    @staticmethod
    def _normalize_name(value: str) -> str:
        return value.strip().replace("_", "-").lower()


registry = SkillRegistry.get_instance()
for _skill in BUILTIN_SKILLS:
    registry.register(_skill)


def get_skill(name: str | None = None) -> SiteSkill:
    return registry.get(name)


def list_skills() -> List[SkillSummary]:
    return registry.list_skills()
