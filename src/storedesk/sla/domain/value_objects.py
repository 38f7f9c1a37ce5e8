"""
SLA Value Objects
==================

Immutable value objects for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from storedesk.config import TicketPriority, TicketStatus, VALID_PRIORITIES
from storedesk.sla.domain.entities import EscalationTrigger, SLAViolation


@dataclass(frozen=True)
class SLARule:
    """Timeout thresholds for one priority."""
    assignment_timeout: timedelta
    acceptance_timeout: timedelta
    resolution_timeout: timedelta


DEFAULT_SLA_RULES: Mapping[TicketPriority, SLARule] = MappingProxyType({
    TicketPriority.HIGH: SLARule(
        assignment_timeout=timedelta(minutes=15),
        acceptance_timeout=timedelta(minutes=30),
        resolution_timeout=timedelta(hours=4),
    ),
    TicketPriority.MEDIUM: SLARule(
        assignment_timeout=timedelta(minutes=30),
        acceptance_timeout=timedelta(minutes=60),
        resolution_timeout=timedelta(hours=12),
    ),
    TicketPriority.LOW: SLARule(
        assignment_timeout=timedelta(minutes=120),
        acceptance_timeout=timedelta(minutes=240),
        resolution_timeout=timedelta(hours=48),
    ),
})


class SLAPolicy:
    """
    Priority to timeout table with deadline calculation.

    Read-only once constructed; unknown priorities use the MEDIUM rule.
    """

    FALLBACK_PRIORITY = TicketPriority.MEDIUM

    def __init__(self, rules: Optional[Mapping[TicketPriority, SLARule]] = None):
        merged = dict(DEFAULT_SLA_RULES)
        if rules:
            merged.update(rules)
        self._rules = MappingProxyType(merged)

    @property
    def rules(self) -> Mapping[TicketPriority, SLARule]:
        return self._rules

    def rule_for(self, priority) -> SLARule:
        try:
            return self._rules[TicketPriority(priority)]
        except (ValueError, KeyError):
            return self._rules[self.FALLBACK_PRIORITY]

    def assignment_timeout(self, priority) -> timedelta:
        return self.rule_for(priority).assignment_timeout

    def acceptance_timeout(self, priority) -> timedelta:
        return self.rule_for(priority).acceptance_timeout

    def resolution_timeout(self, priority) -> timedelta:
        return self.rule_for(priority).resolution_timeout

    def deadline_for(self, priority, created_at: datetime) -> datetime:
        """SLA deadline: creation time plus the priority's resolution timeout."""
        return created_at + self.resolution_timeout(priority)

    @classmethod
    def from_config(cls, config: "SLAPolicyConfig") -> "SLAPolicy":
        return cls({
            TicketPriority(priority): SLARule(
                assignment_timeout=timedelta(minutes=minutes["assignment"]),
                acceptance_timeout=timedelta(minutes=minutes["acceptance"]),
                resolution_timeout=timedelta(minutes=minutes["resolution"]),
            )
            for priority, minutes in config.sla_rules.items()
        })

    def as_minutes(self) -> Dict[str, Dict[str, int]]:
        """Table in minutes, keyed by priority value."""
        return {
            priority.value: {
                "assignment": int(rule.assignment_timeout.total_seconds() // 60),
                "acceptance": int(rule.acceptance_timeout.total_seconds() // 60),
                "resolution": int(rule.resolution_timeout.total_seconds() // 60),
            }
            for priority, rule in self._rules.items()
        }


_TIMEOUT_KINDS = ("assignment", "acceptance", "resolution")


class SLAPolicyConfig(BaseModel):
    """
    SLA configuration loaded from YAML.

    Timeouts are in minutes by priority. Priorities or timeouts left out of
    the file keep their built-in values.
    """
    sla_rules: Dict[str, Dict[str, int]] = Field(
        default_factory=dict,
        description="Timeouts in minutes by priority"
    )

    @field_validator("sla_rules")
    @classmethod
    def validate_sla_rules(cls, v: Dict[str, Dict[str, int]]) -> Dict[str, Dict[str, int]]:
        """
        Normalize priority keys and fill missing entries from the defaults.

        Every timeout must grow strictly from HIGH to MEDIUM to LOW, so a more
        urgent ticket never gets a later deadline.
        """
        defaults = SLAPolicy().as_minutes()
        normalized: Dict[str, Dict[str, int]] = {}

        for key, minutes in v.items():
            priority = str(key).upper()
            if priority not in {p.value for p in VALID_PRIORITIES}:
                raise ValueError(f"Unknown priority in SLA rules: {key}")
            for kind, value in minutes.items():
                if kind not in _TIMEOUT_KINDS:
                    raise ValueError(f"Unknown SLA timeout '{kind}' for {priority}")
                if value <= 0:
                    raise ValueError(f"SLA timeout '{kind}' for {priority} must be positive")
            normalized[priority] = {**defaults[priority], **minutes}

        for priority in VALID_PRIORITIES:
            normalized.setdefault(priority.value, defaults[priority.value])

        for kind in _TIMEOUT_KINDS:
            chain = [normalized[p.value][kind] for p in VALID_PRIORITIES]
            if not all(shorter < longer for shorter, longer in zip(chain, chain[1:])):
                raise ValueError(
                    f"SLA '{kind}' timeouts must increase strictly HIGH < MEDIUM < LOW, got {chain}"
                )

        return normalized


class SLACalculator:
    """
    Pure functions for SLA evaluation.

    Stateless utility class - all timeout checks in one place.
    """

    @staticmethod
    def violations(ticket, policy: SLAPolicy, now: datetime) -> List[SLAViolation]:
        """
        Every SLA clause the ticket currently breaches.

        Only OPEN, ASSIGNED and IN_PROGRESS tickets are evaluated. All
        comparisons are strict: a ticket exactly at a threshold is on time.

        Args:
            ticket: Ticket with status, priority and lifecycle timestamps
            policy: SLA table
            now: Evaluation time

        Returns:
            Violations in evaluation order; the deadline clause comes last
        """
        if ticket.status not in (TicketStatus.OPEN, TicketStatus.ASSIGNED, TicketStatus.IN_PROGRESS):
            return []

        rule = policy.rule_for(ticket.priority)
        found: List[SLAViolation] = []

        if ticket.status == TicketStatus.OPEN:
            limit = ticket.created_at + rule.assignment_timeout
            if now > limit:
                found.append(SLAViolation(EscalationTrigger.ASSIGNMENT_TIMEOUT, limit))

        elif ticket.status == TicketStatus.ASSIGNED:
            if ticket.assigned_at is not None and ticket.accepted_at is None:
                limit = ticket.assigned_at + rule.acceptance_timeout
                if now > limit:
                    found.append(SLAViolation(EscalationTrigger.ACCEPTANCE_TIMEOUT, limit))

        elif ticket.status == TicketStatus.IN_PROGRESS:
            if ticket.accepted_at is not None and ticket.completed_at is None:
                limit = ticket.accepted_at + rule.resolution_timeout
                if now > limit:
                    found.append(SLAViolation(EscalationTrigger.RESOLUTION_TIMEOUT, limit))

        if ticket.completed_at is None and ticket.sla_deadline is not None and now > ticket.sla_deadline:
            found.append(SLAViolation(EscalationTrigger.SLA_DEADLINE, ticket.sla_deadline))

        return found
