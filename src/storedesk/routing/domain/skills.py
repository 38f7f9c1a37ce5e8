"""
Skill requirements per issue category.

Maps a (category, subcategory) pair to the skills a provider needs, each with
an importance weight between 0 and 1.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple


@dataclass(frozen=True)
class SkillRequirement:
    skill: str
    weight: float


GENERAL_MAINTENANCE = "General Maintenance"

DEFAULT_REQUIREMENTS: Tuple[SkillRequirement, ...] = (SkillRequirement(GENERAL_MAINTENANCE, 1.0),)

CATEGORY_SKILLS: Dict[Tuple[str, str], Tuple[SkillRequirement, ...]] = {
    ("Facilities", "Cold Storage"): (
        SkillRequirement("Refrigeration", 1.0),
        SkillRequirement("HVAC", 0.7),
        SkillRequirement("Electrical", 0.3),
    ),
    ("Facilities", "Electrical"): (
        SkillRequirement("Electrical", 1.0),
        SkillRequirement(GENERAL_MAINTENANCE, 0.5),
    ),
    ("Facilities", "Plumbing"): (
        SkillRequirement("Plumbing", 1.0),
        SkillRequirement(GENERAL_MAINTENANCE, 0.5),
    ),
    ("Facilities", "HVAC"): (
        SkillRequirement("HVAC", 1.0),
        SkillRequirement("Electrical", 0.4),
    ),
    ("IT", "POS Systems"): (
        SkillRequirement("POS Systems", 1.0),
        SkillRequirement("IT Support", 0.8),
        SkillRequirement("Electrical", 0.3),
    ),
    ("IT", "Network"): (
        SkillRequirement("Network", 1.0),
        SkillRequirement("IT Support", 0.8),
    ),
    ("Equipment", "Shopping Carts"): (
        SkillRequirement(GENERAL_MAINTENANCE, 1.0),
        SkillRequirement("Mechanical", 0.7),
    ),
}


def requirements_for(category: str, subcategory: str) -> Tuple[SkillRequirement, ...]:
    """Weighted requirements for a category; unmapped pairs need general maintenance."""
    return CATEGORY_SKILLS.get((category, subcategory), DEFAULT_REQUIREMENTS)


def required_skills_for(category: str, subcategory: str) -> List[str]:
    return [r.skill for r in requirements_for(category, subcategory)]


def skills_match(a: str, b: str) -> bool:
    """Case-insensitive substring match in either direction."""
    a, b = a.strip().lower(), b.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def has_skill(provider_skills: Iterable[str], skill: str) -> bool:
    return any(skills_match(skill, candidate) for candidate in provider_skills)
