"""
SLA Application Layer
=====================

Contains:
- Repository and notifier interfaces
- EscalationMonitor: the periodic SLA sweep
- EscalationService: escalation lifecycle and read accessors
- DTOs for the HTTP layer
"""

from storedesk.sla.application.services import (
    EscalationMonitor,
    EscalationService,
    IEscalationNotifier,
    IEscalationRepository,
)
from storedesk.sla.application.dto import (
    EscalationListResponse,
    EscalationResponse,
    SLAPolicyResponse,
    SweepReportResponse,
)

__all__ = [
    # Interfaces
    "IEscalationNotifier",
    "IEscalationRepository",
    # Services
    "EscalationMonitor",
    "EscalationService",
    # DTOs
    "EscalationListResponse",
    "EscalationResponse",
    "SLAPolicyResponse",
    "SweepReportResponse",
]
