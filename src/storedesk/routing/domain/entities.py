"""
Routing Domain Entities
========================

Pure Python domain entities for ticket routing.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from storedesk.config import (
    ACTIVE_TICKET_STATUSES,
    AssignmentStatus,
    ProviderStatus,
    TicketPriority,
    TicketStatus,
)
from storedesk.routing.domain.geo import is_finite_number
from storedesk.routing.domain.scoring import ScoringWeights


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair in decimal degrees."""
    latitude: float
    longitude: float

    @property
    def is_valid(self) -> bool:
        return is_finite_number(self.latitude) and is_finite_number(self.longitude)


@dataclass
class ServiceProvider:
    """
    A technician company that can be assigned tickets.

    current_load counts tickets presently assigned and is bounded by
    capacity_per_day.
    """
    id: str
    company_name: str
    skills: List[str]
    capacity_per_day: int
    current_load: int
    status: ProviderStatus
    coordinates: Optional[Coordinates] = None
    active_user_count: int = 0

    @property
    def is_active(self) -> bool:
        """At least one active linked user account."""
        return self.active_user_count > 0

    @property
    def has_capacity(self) -> bool:
        return self.current_load < self.capacity_per_day


@dataclass
class Ticket:
    """
    A reported store issue.

    sla_deadline is fixed at creation from the priority and never changes.
    """
    id: str
    description: str
    location_in_store: str
    store_id: str
    reporter_user_id: str
    priority: TicketPriority
    status: TicketStatus
    created_at: datetime
    sla_deadline: datetime
    category: str = "General"
    subcategory: str = "Maintenance"
    classification_confidence: float = 0.0
    qr_asset_id: Optional[str] = None
    assigned_service_provider_id: Optional[str] = None
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Read-only join, populated by repositories for escalation routing
    store_moderator_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_TICKET_STATUSES

    def assigned_to(self, provider_id: str, at: datetime) -> "Ticket":
        """Copy of this ticket assigned to a provider."""
        return replace(
            self,
            status=TicketStatus.ASSIGNED,
            assigned_service_provider_id=provider_id,
            assigned_at=at,
        )

    def rejected(self) -> "Ticket":
        """Copy returned to the unassigned pool after a technician rejection."""
        return replace(
            self,
            status=TicketStatus.REJECTED_BY_TECH,
            assigned_service_provider_id=None,
            assigned_at=None,
        )

    def reopened(self) -> "Ticket":
        return replace(
            self,
            status=TicketStatus.OPEN,
            assigned_service_provider_id=None,
            assigned_at=None,
        )


@dataclass
class TicketAssignment:
    """One routing attempt; the highest sequence is authoritative."""
    id: str
    ticket_id: str
    service_provider_id: str
    assignment_sequence: int
    status: AssignmentStatus
    created_at: datetime
    routing_score: Optional[float] = None
    rejection_reason: Optional[str] = None


@dataclass
class ScoredProvider:
    """An available candidate with its distance and availability score."""
    provider: ServiceProvider
    distance_km: float
    availability_score: float


@dataclass(frozen=True)
class TicketContext:
    """What the scorer needs to know about the ticket being routed."""
    category: str
    subcategory: str
    priority: TicketPriority


@dataclass(frozen=True)
class ScoreBreakdown:
    skill_match: float
    availability: float
    proximity: float
    performance: float


@dataclass
class ProviderScore:
    """Weighted score of one candidate for one ticket."""
    provider_id: str
    total_score: float
    breakdown: ScoreBreakdown
    weights: ScoringWeights
    explanation: str


class RoutingStage(str, Enum):
    """How far a routing attempt got."""
    NEW = "NEW"
    CLASSIFIED = "CLASSIFIED"
    CLASSIFICATION_FAILED = "CLASSIFICATION_FAILED"
    CANDIDATES_FOUND = "CANDIDATES_FOUND"
    SCORED = "SCORED"
    ASSIGNED = "ASSIGNED"
    NO_CANDIDATES = "NO_CANDIDATES"


class RoutingOutcome(str, Enum):
    ASSIGNED = "ASSIGNED"
    NO_CANDIDATES = "NO_CANDIDATES"


@dataclass
class RoutingContext:
    """
    State threaded through one routing attempt.

    Carries inputs, intermediate results and any recovered error; replaces
    per-step mutable globals.
    """
    ticket_id: Optional[str]
    store_location: Coordinates
    stage: RoutingStage = RoutingStage.NEW
    required_skills: List[str] = field(default_factory=list)
    excluded_provider_ids: Set[str] = field(default_factory=set)
    candidates: List[ScoredProvider] = field(default_factory=list)
    scores: List[ProviderScore] = field(default_factory=list)
    selected: Optional[ProviderScore] = None
    error: Optional[str] = None

    def advance(self, stage: RoutingStage) -> None:
        self.stage = stage


@dataclass
class RoutingResult:
    """What callers of the routing operations get back."""
    ticket_id: str
    priority: TicketPriority
    outcome: RoutingOutcome
    assigned_provider_id: Optional[str] = None
    assignment_sequence: Optional[int] = None
    routing_score: Optional[float] = None
    explanation: Optional[str] = None
    stage: RoutingStage = RoutingStage.NEW

    @property
    def requires_manual_routing(self) -> bool:
        return self.outcome == RoutingOutcome.NO_CANDIDATES
