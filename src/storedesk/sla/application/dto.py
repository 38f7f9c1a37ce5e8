"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API layer.

These Pydantic models handle serialization for API responses.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from storedesk.sla.domain import Escalation, SLAPolicy, SweepReport


# ========== Type Aliases for Literals ==========
EscalationStatusStr = Literal["TRIGGERED", "ACKNOWLEDGED", "RESOLVED"]


# ========== Response DTOs ==========

class EscalationResponse(BaseModel):
    """Response model for an escalation."""
    id: str = Field(..., description="Escalation ID")
    ticket_id: str = Field(..., description="Escalated ticket ID")
    trigger_event: str = Field(..., description="SLA clause that fired")
    status: EscalationStatusStr
    escalated_to_user_id: Optional[str] = Field(None, description="Store moderator notified")
    created_at: datetime
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, escalation: Escalation) -> "EscalationResponse":
        return cls(
            id=escalation.id,
            ticket_id=escalation.ticket_id,
            trigger_event=escalation.trigger_event,
            status=escalation.status.value,
            escalated_to_user_id=escalation.escalated_to_user_id,
            created_at=escalation.created_at,
            acknowledged_at=escalation.acknowledged_at,
            resolved_at=escalation.resolved_at,
        )


class EscalationListResponse(BaseModel):
    """Response model for a list of escalations."""
    escalations: List[EscalationResponse] = Field(default_factory=list)
    total: int = 0

    @classmethod
    def from_entities(cls, escalations: List[Escalation]) -> "EscalationListResponse":
        return cls(
            escalations=[EscalationResponse.from_entity(e) for e in escalations],
            total=len(escalations),
        )


class SweepReportResponse(BaseModel):
    """Response model for a manual sweep."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    tickets_evaluated: int = 0
    escalations_created: int = 0
    duplicates_skipped: int = 0
    tickets_escalated: List[str] = Field(default_factory=list)
    failed_ticket_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: SweepReport) -> "SweepReportResponse":
        return cls(**report.to_dict())


class SLARuleResponse(BaseModel):
    """Timeouts for one priority, in minutes."""
    assignment_minutes: int
    acceptance_minutes: int
    resolution_minutes: int


class SLAPolicyResponse(BaseModel):
    """Response model for the active SLA table."""
    rules: Dict[str, SLARuleResponse]

    @classmethod
    def from_policy(cls, policy: SLAPolicy) -> "SLAPolicyResponse":
        return cls(rules={
            priority: SLARuleResponse(
                assignment_minutes=minutes["assignment"],
                acceptance_minutes=minutes["acceptance"],
                resolution_minutes=minutes["resolution"],
            )
            for priority, minutes in policy.as_minutes().items()
        })
