"""
SLA Domain Layer
================

Domain layer for SLA escalation.

Contains:
- Entities: Escalation, SweepReport, SLAViolation, EscalationTrigger
- Value Objects: SLARule, SLAPolicy, SLAPolicyConfig
- Domain Services: SLACalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from storedesk.sla.domain.entities import (
    Escalation,
    EscalationTrigger,
    SLAViolation,
    SweepReport,
)
from storedesk.sla.domain.value_objects import (
    DEFAULT_SLA_RULES,
    SLACalculator,
    SLAPolicy,
    SLAPolicyConfig,
    SLARule,
)

__all__ = [
    # Entities
    "Escalation",
    "EscalationTrigger",
    "SLAViolation",
    "SweepReport",
    # Value Objects & Services
    "DEFAULT_SLA_RULES",
    "SLACalculator",
    "SLAPolicy",
    "SLAPolicyConfig",
    "SLARule",
]
