"""
Routing Application DTOs
=========================

Data Transfer Objects for the routing API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from storedesk.routing.domain import RoutingResult, TicketAssignment


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["HIGH", "MEDIUM", "LOW"]
RoutingOutcomeStr = Literal["ASSIGNED", "NO_CANDIDATES"]
AssignmentStatusStr = Literal["PROPOSED", "ACCEPTED", "REJECTED"]


# ========== Request DTOs ==========

class TicketCreateRequest(BaseModel):
    """Request model for reporting a new issue."""
    description: str = Field(..., min_length=10, max_length=1000, description="Issue description")
    location_in_store: str = Field(..., min_length=1, max_length=100, description="Location within the store")
    qr_asset_id: Optional[str] = Field(None, max_length=100, description="Scanned asset tag")
    store_id: str = Field(..., min_length=1, description="Reporting store ID")
    reporter_user_id: str = Field(..., min_length=1, description="Reporting user ID")

    @field_validator("description", "location_in_store")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Reject whitespace-only text."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class AssignmentRejectRequest(BaseModel):
    """Request model for a technician rejecting an assignment."""
    provider_id: str = Field(..., min_length=1, description="Rejecting provider ID")
    reason: str = Field(..., min_length=5, max_length=200, description="Rejection reason")


# ========== Response DTOs ==========

class RoutingResultResponse(BaseModel):
    """Response model for a routing attempt."""
    ticket_id: str
    priority: PriorityStr
    outcome: RoutingOutcomeStr
    assigned_provider_id: Optional[str] = None
    assignment_sequence: Optional[int] = None
    routing_score: Optional[float] = None
    explanation: Optional[str] = None
    requires_manual_routing: bool = False

    @classmethod
    def from_result(cls, result: RoutingResult) -> "RoutingResultResponse":
        return cls(
            ticket_id=result.ticket_id,
            priority=result.priority.value,
            outcome=result.outcome.value,
            assigned_provider_id=result.assigned_provider_id,
            assignment_sequence=result.assignment_sequence,
            routing_score=round(result.routing_score, 4) if result.routing_score is not None else None,
            explanation=result.explanation,
            requires_manual_routing=result.requires_manual_routing,
        )


class AssignmentResponse(BaseModel):
    """Response model for one routing attempt of a ticket."""
    id: str
    ticket_id: str
    service_provider_id: str
    assignment_sequence: int
    status: AssignmentStatusStr
    routing_score: Optional[float] = None
    rejection_reason: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_entity(cls, assignment: TicketAssignment) -> "AssignmentResponse":
        return cls(
            id=assignment.id,
            ticket_id=assignment.ticket_id,
            service_provider_id=assignment.service_provider_id,
            assignment_sequence=assignment.assignment_sequence,
            status=assignment.status.value,
            routing_score=assignment.routing_score,
            rejection_reason=assignment.rejection_reason,
            created_at=assignment.created_at,
        )


class AssignmentHistoryResponse(BaseModel):
    """Response model for the assignment history of a ticket."""
    ticket_id: str
    assignments: List[AssignmentResponse] = Field(default_factory=list)
    total: int = 0
