"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: the monitor raises escalations, the escalation
  service moves them through their lifecycle
- Dependency Inversion: depend on abstractions (repositories), not concrete
  implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple
from uuid import uuid4

from storedesk.config import EscalationStatus, TicketStatus
from storedesk.core import InvalidEscalationState, ResourceNotFoundException
from storedesk.routing.application.interfaces import ITicketRepository, ITransactionManager
from storedesk.routing.domain import Ticket
from storedesk.shared.infrastructure.logging import get_logger, log_latency
from storedesk.sla.domain import Escalation, SLACalculator, SLAPolicy, SweepReport

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


# ========== Repository Interfaces (Dependency Inversion) ==========

class IEscalationRepository(ABC):
    """Interface for escalation data access."""

    @abstractmethod
    async def find_open(self, ticket_id: str, trigger_event: str) -> Optional[Escalation]:
        """TRIGGERED or ACKNOWLEDGED escalation for this ticket and trigger, if any."""

    @abstractmethod
    async def create(self, escalation: Escalation) -> Optional[Escalation]:
        """
        Create new escalation.

        Returns:
            The escalation, or None when an open one for the same
            (ticket, trigger_event) already exists
        """

    @abstractmethod
    async def get_by_id(self, escalation_id: str) -> Optional[Escalation]:
        """Get escalation by ID."""

    @abstractmethod
    async def update(self, escalation: Escalation) -> Escalation:
        """Persist status and lifecycle timestamps."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[Escalation]:
        """All escalations of a ticket, oldest first."""

    @abstractmethod
    async def list_open(self, limit: int = 100) -> List[Escalation]:
        """Open escalations, newest first."""


class IEscalationNotifier(ABC):
    """Outbound notification for new escalations."""

    @abstractmethod
    async def notify(self, escalation: Escalation, ticket: Ticket) -> bool:
        """Send a notification; True when delivered."""


# ========== Application Services ==========

class EscalationMonitor:
    """
    Periodic SLA sweep over active tickets.

    Each ticket is evaluated in its own transaction so one failure neither
    stops the sweep nor leaves partial writes. Running the sweep twice on
    unchanged tickets creates nothing new.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        escalation_repository: IEscalationRepository,
        transaction_manager: ITransactionManager,
        sla_policy: SLAPolicy,
        notifier: Optional[IEscalationNotifier] = None,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ):
        self._tickets = ticket_repository
        self._escalations = escalation_repository
        self._transactions = transaction_manager
        self._sla_policy = sla_policy
        self._notifier = notifier
        self._clock = clock
        self._new_id = id_factory

    async def run(self) -> SweepReport:
        """
        Sweep, commit, then notify.

        A failed commit raises and nothing is sent.
        """
        report = await self.sweep()
        await self._transactions.commit()
        await self.notify(report)
        return report

    async def sweep(self) -> SweepReport:
        """
        Evaluate every active ticket against the SLA policy.

        Nothing is announced here; created escalations wait in
        report.pending_notifications until notify().

        Returns:
            SweepReport with created escalations and per-ticket failures

        Raises:
            RepositoryException: If the active tickets cannot be loaded
        """
        now = self._clock()
        report = SweepReport(started_at=now)

        with log_latency(logger, "escalation_sweep"):
            tickets = await self._tickets.find_active()

            for ticket in tickets:
                report.tickets_evaluated += 1
                try:
                    created, duplicates, escalated = await self._evaluate(ticket, now)
                except Exception as e:
                    logger.error(
                        "Escalation evaluation failed",
                        extra={"ticket_id": ticket.id, "error": str(e)},
                        exc_info=True
                    )
                    report.failed_ticket_ids.append(ticket.id)
                    continue

                report.escalations_created.extend(created)
                report.duplicates_skipped += duplicates
                if escalated:
                    report.tickets_escalated.append(ticket.id)
                report.pending_notifications.extend((escalation, ticket) for escalation in created)

        report.finished_at = self._clock()
        logger.info("Escalation sweep finished", extra=report.to_dict())
        return report

    async def _evaluate(self, ticket: Ticket, now: datetime) -> Tuple[List[Escalation], int, bool]:
        violations = SLACalculator.violations(ticket, self._sla_policy, now)
        if not violations:
            return [], 0, False

        created: List[Escalation] = []
        duplicates = 0
        escalated = False

        async with self._transactions.atomic():
            for violation in violations:
                trigger_event = violation.trigger.value

                existing = await self._escalations.find_open(ticket.id, trigger_event)
                if existing is None:
                    escalation = await self._escalations.create(
                        Escalation(
                            id=self._new_id(),
                            ticket_id=ticket.id,
                            trigger_event=trigger_event,
                            status=EscalationStatus.TRIGGERED,
                            created_at=now,
                            escalated_to_user_id=ticket.store_moderator_id,
                        )
                    )
                    if escalation is None:
                        duplicates += 1
                    else:
                        created.append(escalation)
                        logger.warning(
                            "SLA escalation raised",
                            extra={
                                "ticket_id": ticket.id,
                                "trigger_event": trigger_event,
                                "priority": ticket.priority.value,
                                "breached_at": violation.breached_at.isoformat(),
                                "escalated_to_user_id": ticket.store_moderator_id,
                            }
                        )
                else:
                    duplicates += 1

                if violation.trigger.escalates_ticket and ticket.status != TicketStatus.ESCALATED:
                    await self._tickets.update_status(ticket.id, TicketStatus.ESCALATED)
                    escalated = True

        return created, duplicates, escalated

    async def notify(self, report: SweepReport) -> int:
        """
        Announce the escalations a sweep created. Call only once they are committed.

        Returns:
            Number of notifications delivered
        """
        if self._notifier is None:
            return 0

        delivered = 0
        for escalation, ticket in report.pending_notifications:
            try:
                if await self._notifier.notify(escalation, ticket):
                    delivered += 1
            except Exception as e:
                logger.warning(
                    "Escalation notification failed",
                    extra={"escalation_id": escalation.id, "ticket_id": ticket.id, "error": str(e)}
                )
        report.pending_notifications.clear()
        return delivered


class EscalationService:
    """Escalation lifecycle and read accessors for dashboards."""

    def __init__(
        self,
        escalation_repository: IEscalationRepository,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._escalations = escalation_repository
        self._clock = clock

    async def acknowledge(self, escalation_id: str) -> Escalation:
        """
        TRIGGERED -> ACKNOWLEDGED.

        Raises:
            ResourceNotFoundException: If the escalation does not exist
            InvalidEscalationState: If it is not TRIGGERED
        """
        escalation = await self._require(escalation_id)
        self._check_transition(escalation, EscalationStatus.ACKNOWLEDGED)
        escalation.acknowledge(self._clock())
        escalation = await self._escalations.update(escalation)
        logger.info("Escalation acknowledged", extra={"escalation_id": escalation_id})
        return escalation

    async def resolve(self, escalation_id: str) -> Escalation:
        """
        TRIGGERED or ACKNOWLEDGED -> RESOLVED.

        Raises:
            ResourceNotFoundException: If the escalation does not exist
            InvalidEscalationState: If it is already RESOLVED
        """
        escalation = await self._require(escalation_id)
        self._check_transition(escalation, EscalationStatus.RESOLVED)
        escalation.resolve(self._clock())
        escalation = await self._escalations.update(escalation)
        logger.info("Escalation resolved", extra={"escalation_id": escalation_id})
        return escalation

    async def history_for_ticket(self, ticket_id: str) -> List[Escalation]:
        return await self._escalations.list_for_ticket(ticket_id)

    async def open_escalations(self, limit: int = 100) -> List[Escalation]:
        return await self._escalations.list_open(limit=limit)

    async def _require(self, escalation_id: str) -> Escalation:
        escalation = await self._escalations.get_by_id(escalation_id)
        if escalation is None:
            raise ResourceNotFoundException("Escalation", escalation_id)
        return escalation

    @staticmethod
    def _check_transition(escalation: Escalation, target: EscalationStatus) -> None:
        if not escalation.can_transition_to(target):
            raise InvalidEscalationState(escalation.id, escalation.status.value, target.value)
