"""
Routing Domain Layer
====================

Contains:
- Entities: Ticket, ServiceProvider, TicketAssignment, routing context/result
- GeoDistance: haversine distance with a sentinel for unusable coordinates
- Skill requirement table and scoring rules

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from storedesk.routing.domain.entities import (
    Coordinates,
    ServiceProvider,
    Ticket,
    TicketAssignment,
    ScoredProvider,
    TicketContext,
    ScoreBreakdown,
    ProviderScore,
    RoutingStage,
    RoutingOutcome,
    RoutingContext,
    RoutingResult,
)
from storedesk.routing.domain.geo import EARTH_RADIUS_KM, UNKNOWN_DISTANCE_KM, distance, is_finite_number
from storedesk.routing.domain.scoring import (
    AVAILABILITY_TIE_BAND,
    NEUTRAL_PERFORMANCE,
    PERFORMANCE_WINDOW_DAYS,
    PROXIMITY_HORIZON_KM,
    ScoringWeights,
)
from storedesk.routing.domain.skills import (
    CATEGORY_SKILLS,
    SkillRequirement,
    required_skills_for,
    requirements_for,
    skills_match,
)

__all__ = [
    # Entities
    "Coordinates",
    "ServiceProvider",
    "Ticket",
    "TicketAssignment",
    "ScoredProvider",
    "TicketContext",
    "ScoreBreakdown",
    "ProviderScore",
    "RoutingStage",
    "RoutingOutcome",
    "RoutingContext",
    "RoutingResult",
    # Geo
    "EARTH_RADIUS_KM",
    "UNKNOWN_DISTANCE_KM",
    "distance",
    "is_finite_number",
    # Scoring
    "AVAILABILITY_TIE_BAND",
    "NEUTRAL_PERFORMANCE",
    "PERFORMANCE_WINDOW_DAYS",
    "PROXIMITY_HORIZON_KM",
    "ScoringWeights",
    # Skills
    "CATEGORY_SKILLS",
    "SkillRequirement",
    "required_skills_for",
    "requirements_for",
    "skills_match",
]
