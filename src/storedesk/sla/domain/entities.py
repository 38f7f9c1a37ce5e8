"""
SLA Domain Entities
====================

Pure Python domain entities for SLA escalation.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple

from storedesk.config import EscalationStatus, OPEN_ESCALATION_STATUSES


class EscalationTrigger(str, Enum):
    """SLA clause that fired; the value is stored as the trigger event text."""
    ASSIGNMENT_TIMEOUT = "Assignment timeout exceeded"
    ACCEPTANCE_TIMEOUT = "Acceptance timeout exceeded"
    RESOLUTION_TIMEOUT = "Resolution timeout exceeded"
    SLA_DEADLINE = "SLA deadline exceeded"

    @property
    def escalates_ticket(self) -> bool:
        """Only the hard deadline moves the ticket itself to ESCALATED."""
        return self is EscalationTrigger.SLA_DEADLINE


@dataclass(frozen=True)
class SLAViolation:
    """A breached SLA clause and the moment it was breached."""
    trigger: EscalationTrigger
    breached_at: datetime


@dataclass
class Escalation:
    """
    Escalation entity.

    At most one TRIGGERED or ACKNOWLEDGED escalation exists per
    (ticket, trigger_event) pair; RESOLVED ones do not count.
    """

    id: str
    ticket_id: str
    trigger_event: str
    status: EscalationStatus
    created_at: datetime
    escalated_to_user_id: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ESCALATION_STATUSES

    def can_transition_to(self, target: EscalationStatus) -> bool:
        if target == EscalationStatus.ACKNOWLEDGED:
            return self.status == EscalationStatus.TRIGGERED
        if target == EscalationStatus.RESOLVED:
            return self.is_open
        return False

    def acknowledge(self, timestamp: datetime) -> None:
        self.status = EscalationStatus.ACKNOWLEDGED
        self.acknowledged_at = timestamp

    def resolve(self, timestamp: datetime) -> None:
        self.status = EscalationStatus.RESOLVED
        self.resolved_at = timestamp


@dataclass
class SweepReport:
    """Outcome of one escalation sweep."""

    started_at: datetime
    tickets_evaluated: int = 0
    escalations_created: List[Escalation] = field(default_factory=list)
    duplicates_skipped: int = 0
    tickets_escalated: List[str] = field(default_factory=list)
    failed_ticket_ids: List[str] = field(default_factory=list)
    finished_at: Optional[datetime] = None
    # Created escalations with their tickets, announced only after commit
    pending_notifications: List[Tuple[Escalation, Any]] = field(default_factory=list, repr=False)

    @property
    def created_count(self) -> int:
        return len(self.escalations_created)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses and logs."""
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "tickets_evaluated": self.tickets_evaluated,
            "escalations_created": self.created_count,
            "duplicates_skipped": self.duplicates_skipped,
            "tickets_escalated": list(self.tickets_escalated),
            "failed_ticket_ids": list(self.failed_ticket_ids),
        }
