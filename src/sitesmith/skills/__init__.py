"""Site templates the generator can be asked to follow."""

from .base import SiteSkill, StaticSiteSkill
from .registry import DEFAULT_SKILL, SkillRegistry, get_skill, list_skills, registry

__all__ = [
    "DEFAULT_SKILL",
    "SiteSkill",
    "SkillRegistry",
    "StaticSiteSkill",
    "get_skill",
    "list_skills",
    "registry",
]
