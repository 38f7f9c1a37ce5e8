"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA escalation:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: SLA policy loading, Slack notifier, sweep scheduler
"""

from storedesk.sla.infrastructure.models import EscalationModel
from storedesk.sla.infrastructure.repositories import SQLAlchemyEscalationRepository
from storedesk.sla.infrastructure.external import (
    CircuitBreaker,
    EscalationScheduler,
    SlackEscalationNotifier,
    load_sla_policy,
)

__all__ = [
    "EscalationModel",
    "SQLAlchemyEscalationRepository",
    "CircuitBreaker",
    "EscalationScheduler",
    "SlackEscalationNotifier",
    "load_sla_policy",
]
