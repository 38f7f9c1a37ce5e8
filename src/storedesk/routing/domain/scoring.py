"""
Provider scoring rules.

Weights, named constants and the pure sub-score functions used to rank
candidate providers for a ticket.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from storedesk.config import TicketPriority
from storedesk.routing.domain.skills import has_skill, requirements_for

# ========== Constants ==========

# Distance at which proximity reaches zero.
PROXIMITY_HORIZON_KM = 50.0

# Providers whose availability differs by at most this much are ordered by distance.
AVAILABILITY_TIE_BAND = 0.1

# Trailing window for completed-ticket performance.
PERFORMANCE_WINDOW_DAYS = 30

# Performance credited to providers without completions in the window; below a
# perfect record so new providers are not favoured over proven ones.
NEUTRAL_PERFORMANCE = 0.7

# Shift applied to each weight for HIGH priority tickets.
HIGH_PRIORITY_SHIFT = 0.1


@dataclass(frozen=True)
class ScoringWeights:
    """Relative importance of each factor; always sums to 1.0."""
    skill_match: float = 0.4
    availability: float = 0.2
    proximity: float = 0.3
    performance: float = 0.1

    @property
    def total(self) -> float:
        return round(self.skill_match + self.availability + self.proximity + self.performance, 6)

    @classmethod
    def for_priority(cls, priority: TicketPriority) -> "ScoringWeights":
        """
        Base weights, shifted toward proximity and availability for HIGH tickets.

        Urgent work favours a technician who is near and free over a perfect
        skill fit.
        """
        base = cls()
        if priority != TicketPriority.HIGH:
            return base
        return cls(
            skill_match=round(base.skill_match - HIGH_PRIORITY_SHIFT, 4),
            availability=round(base.availability + HIGH_PRIORITY_SHIFT, 4),
            proximity=round(base.proximity + HIGH_PRIORITY_SHIFT, 4),
            performance=round(base.performance - HIGH_PRIORITY_SHIFT, 4),
        )


def skill_match_score(provider_skills: Iterable[str], category: str, subcategory: str) -> float:
    """Share of the category's required-skill weight the provider covers."""
    skills = list(provider_skills)
    requirements = requirements_for(category, subcategory)
    total_weight = sum(r.weight for r in requirements)
    if total_weight <= 0:
        return 0.0
    matched = sum(r.weight for r in requirements if has_skill(skills, r.skill))
    return matched / total_weight


def availability_score(current_load: int, capacity_per_day: int) -> float:
    return 1 - current_load / max(capacity_per_day, 1)


def proximity_score(distance_km: float) -> float:
    return max(0.0, 1 - distance_km / PROXIMITY_HORIZON_KM)


def performance_score(completed: int, within_sla: int) -> float:
    if completed <= 0:
        return NEUTRAL_PERFORMANCE
    return within_sla / completed


def weighted_total(
    weights: ScoringWeights,
    skill_match: float,
    availability: float,
    proximity: float,
    performance: float,
) -> float:
    total = (
        weights.skill_match * skill_match
        + weights.availability * availability
        + weights.proximity * proximity
        + weights.performance * performance
    )
    return min(1.0, max(0.0, total))


def explain(
    company_name: str,
    total: float,
    weights: ScoringWeights,
    skill_match: float,
    availability: float,
    proximity: float,
    performance: float,
    distance_km: Optional[float] = None,
) -> str:
    """Audit string listing every sub-score with its weight."""
    distance_part = f", {distance_km:.1f} km" if distance_km is not None else ""
    return (
        f"{company_name}: total {total:.3f} = "
        f"skill {skill_match:.2f} x {weights.skill_match:.2f} + "
        f"availability {availability:.2f} x {weights.availability:.2f} + "
        f"proximity {proximity:.2f} x {weights.proximity:.2f}{distance_part} + "
        f"performance {performance:.2f} x {weights.performance:.2f}"
    )
