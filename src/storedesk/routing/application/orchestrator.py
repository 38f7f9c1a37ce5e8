"""
Routing Orchestrator
====================

Drives a ticket from report to assignment:

    classify -> find candidates -> score -> select -> assign

and handles technician rejection by re-routing to the next best provider.

Every collaborator is injected so tests can substitute fakes.
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import uuid4

from storedesk.config import AssignmentStatus, TicketStatus, settings
from storedesk.core import (
    AssignmentConflict,
    ConfigurationException,
    InvalidLocation,
    InvalidTicketState,
    ResourceNotFoundException,
)
from storedesk.routing.application.availability import AvailabilityFinder
from storedesk.routing.application.interfaces import (
    IAssignmentRepository,
    IProviderRepository,
    IStoreRepository,
    ITicketRepository,
    ITransactionManager,
)
from storedesk.routing.application.scoring import ProviderScorer
from storedesk.routing.domain import (
    Coordinates,
    ProviderScore,
    RoutingContext,
    RoutingOutcome,
    RoutingResult,
    RoutingStage,
    Ticket,
    TicketAssignment,
    TicketContext,
    required_skills_for,
)
from storedesk.shared.infrastructure.logging import get_logger, log_latency
from storedesk.sla.domain import SLAPolicy
from storedesk.triage.application import IClassifier
from storedesk.triage.domain import ClassificationResult, fallback_classification

logger = get_logger(__name__)

REROUTABLE_STATUSES = (TicketStatus.OPEN, TicketStatus.REJECTED_BY_TECH)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class RoutingOrchestrator:
    """
    End-to-end routing of new and rejected tickets.

    The assignment writes (assignment row, ticket status and fields, provider
    load) always run inside one transaction.
    """

    def __init__(
        self,
        classifier: IClassifier,
        availability_finder: AvailabilityFinder,
        scorer: ProviderScorer,
        ticket_repository: ITicketRepository,
        assignment_repository: IAssignmentRepository,
        provider_repository: IProviderRepository,
        store_repository: IStoreRepository,
        transaction_manager: ITransactionManager,
        sla_policy: SLAPolicy,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
        max_assignment_attempts: Optional[int] = None,
    ):
        self._classifier = classifier
        self._finder = availability_finder
        self._scorer = scorer
        self._tickets = ticket_repository
        self._assignments = assignment_repository
        self._providers = provider_repository
        self._stores = store_repository
        self._transactions = transaction_manager
        self._sla_policy = sla_policy
        self._clock = clock
        self._new_id = id_factory
        if max_assignment_attempts is None:
            max_assignment_attempts = settings.routing_max_assignment_attempts
        if max_assignment_attempts < 1:
            raise ConfigurationException(
                f"max_assignment_attempts must be at least 1, got {max_assignment_attempts}"
            )
        self._max_attempts = max_assignment_attempts

    # ========== Operations ==========

    async def process_new_ticket(
        self,
        description: str,
        location_in_store: str,
        store_id: str,
        reporter_user_id: str,
        qr_asset_id: Optional[str] = None,
    ) -> RoutingResult:
        """
        Create a ticket and try to assign it.

        Args:
            description: Issue description reported by store staff
            location_in_store: Where in the store the issue is
            store_id: Reporting store
            reporter_user_id: Reporting user
            qr_asset_id: Optional scanned asset tag

        Returns:
            RoutingResult; NO_CANDIDATES leaves the ticket OPEN for later routing

        Raises:
            ResourceNotFoundException: If the store does not exist
            InvalidLocation: If the store coordinates are unusable
            RepositoryException: On persistence failure
        """
        store_location = await self._store_location(store_id)

        with log_latency(logger, "ticket_routing", store_id=store_id):
            classification = await self._classify(description)
            now = self._clock()

            ticket = Ticket(
                id=self._new_id(),
                description=description,
                location_in_store=location_in_store,
                store_id=store_id,
                reporter_user_id=reporter_user_id,
                qr_asset_id=qr_asset_id,
                priority=classification.priority,
                status=TicketStatus.OPEN,
                created_at=now,
                sla_deadline=self._sla_policy.deadline_for(classification.priority, now),
                category=classification.category,
                subcategory=classification.subcategory,
                classification_confidence=classification.confidence,
            )
            ticket = await self._tickets.create(ticket)

            logger.info(
                "Ticket created",
                extra={
                    "ticket_id": ticket.id,
                    "category": ticket.category,
                    "subcategory": ticket.subcategory,
                    "priority": ticket.priority.value,
                    "sla_deadline": ticket.sla_deadline.isoformat(),
                }
            )

            context = RoutingContext(
                ticket_id=ticket.id,
                store_location=store_location,
                stage=RoutingStage.CLASSIFICATION_FAILED if classification.is_fallback else RoutingStage.CLASSIFIED,
                required_skills=required_skills_for(ticket.category, ticket.subcategory),
                error=classification.reasoning if classification.is_fallback else None,
            )
            return await self._route(ticket, context, sequence=1)

    async def reroute(self, ticket_id: str) -> RoutingResult:
        """
        Route an unassigned ticket again.

        Providers that already rejected this ticket are excluded and the new
        assignment takes the next sequence number. When nobody is left, a
        rejected ticket goes back to OPEN.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            InvalidTicketState: If the ticket is not OPEN or REJECTED_BY_TECH
        """
        ticket = await self._require_ticket(ticket_id)
        if ticket.status not in REROUTABLE_STATUSES:
            raise InvalidTicketState(ticket_id, ticket.status.value, "reroute")

        store_location = await self._store_location(ticket.store_id)
        history = await self._assignments.list_for_ticket(ticket_id)

        context = RoutingContext(
            ticket_id=ticket.id,
            store_location=store_location,
            stage=RoutingStage.CLASSIFIED,
            required_skills=required_skills_for(ticket.category, ticket.subcategory),
            excluded_provider_ids={
                a.service_provider_id for a in history if a.status == AssignmentStatus.REJECTED
            },
        )
        next_sequence = max((a.assignment_sequence for a in history), default=0) + 1

        with log_latency(logger, "ticket_rerouting", ticket_id=ticket_id):
            result = await self._route(ticket, context, sequence=next_sequence)

        if result.outcome == RoutingOutcome.NO_CANDIDATES and ticket.status == TicketStatus.REJECTED_BY_TECH:
            await self._tickets.update(ticket.reopened())
            logger.info("Rejected ticket returned to open pool", extra={"ticket_id": ticket_id})

        return result

    async def reject_assignment(self, ticket_id: str, provider_id: str, reason: str) -> RoutingResult:
        """
        Record a technician rejection and re-route the ticket.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            InvalidTicketState: If the ticket is not ASSIGNED to this provider
        """
        ticket = await self._require_ticket(ticket_id)
        if ticket.status != TicketStatus.ASSIGNED or ticket.assigned_service_provider_id != provider_id:
            raise InvalidTicketState(ticket_id, ticket.status.value, "reject")

        latest = await self._assignments.find_latest_for_ticket(ticket_id)

        async with self._transactions.atomic():
            if (
                latest is not None
                and latest.service_provider_id == provider_id
                and latest.status != AssignmentStatus.REJECTED
            ):
                await self._assignments.update_status(latest.id, AssignmentStatus.REJECTED, rejection_reason=reason)
            await self._tickets.update(ticket.rejected())
            await self._providers.decrement_load(provider_id, 1)

        logger.info(
            "Assignment rejected",
            extra={"ticket_id": ticket_id, "provider_id": provider_id, "reason": reason}
        )
        return await self.reroute(ticket_id)

    async def assignment_history(self, ticket_id: str) -> List[TicketAssignment]:
        """All routing attempts for a ticket, by sequence."""
        await self._require_ticket(ticket_id)
        return await self._assignments.list_for_ticket(ticket_id)

    # ========== Steps ==========

    async def _classify(self, description: str) -> ClassificationResult:
        try:
            return await self._classifier.classify(description)
        except Exception as e:
            logger.warning(
                "Classification failed, using fallback",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            return fallback_classification(f"Fallback classification: {e}")

    async def _route(self, ticket: Ticket, context: RoutingContext, sequence: int) -> RoutingResult:
        candidates = await self._finder.find_available(context.required_skills, context.store_location)
        candidates = [c for c in candidates if c.provider.id not in context.excluded_provider_ids]
        context.candidates = candidates

        if not candidates:
            context.advance(RoutingStage.NO_CANDIDATES)
            logger.info(
                "No available providers, ticket left for later routing",
                extra={
                    "ticket_id": ticket.id,
                    "required_skills": context.required_skills,
                    "excluded": sorted(context.excluded_provider_ids),
                }
            )
            return self._result(ticket, context, RoutingOutcome.NO_CANDIDATES)

        context.advance(RoutingStage.CANDIDATES_FOUND)
        context.scores = await self._scorer.rank(
            candidates,
            TicketContext(category=ticket.category, subcategory=ticket.subcategory, priority=ticket.priority),
        )
        context.advance(RoutingStage.SCORED)

        for score in context.scores[:self._max_attempts]:
            try:
                await self._assign(ticket, score, sequence)
            except AssignmentConflict as e:
                logger.warning(
                    "Provider filled up during assignment, trying next candidate",
                    extra={"ticket_id": ticket.id, "provider_id": e.provider_id}
                )
                context.excluded_provider_ids.add(e.provider_id)
                continue

            context.selected = score
            context.advance(RoutingStage.ASSIGNED)
            logger.info(
                "Ticket assigned",
                extra={
                    "ticket_id": ticket.id,
                    "provider_id": score.provider_id,
                    "assignment_sequence": sequence,
                    "score": round(score.total_score, 4),
                    "candidates": len(candidates),
                }
            )
            return self._result(ticket, context, RoutingOutcome.ASSIGNED, sequence=sequence)

        context.advance(RoutingStage.NO_CANDIDATES)
        context.error = "All candidate providers reached capacity during assignment"
        logger.warning(context.error, extra={"ticket_id": ticket.id})
        return self._result(ticket, context, RoutingOutcome.NO_CANDIDATES)

    async def _assign(self, ticket: Ticket, score: ProviderScore, sequence: int) -> None:
        now = self._clock()
        async with self._transactions.atomic():
            await self._providers.increment_load(score.provider_id, 1)
            await self._assignments.create(
                TicketAssignment(
                    id=self._new_id(),
                    ticket_id=ticket.id,
                    service_provider_id=score.provider_id,
                    assignment_sequence=sequence,
                    status=AssignmentStatus.PROPOSED,
                    created_at=now,
                    routing_score=score.total_score,
                )
            )
            await self._tickets.update(ticket.assigned_to(score.provider_id, now))

    # ========== Helpers ==========

    async def _require_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def _store_location(self, store_id: str) -> Coordinates:
        location = await self._stores.get_location(store_id)
        if location is None:
            raise ResourceNotFoundException("Store", store_id)
        if not location.is_valid:
            raise InvalidLocation(location.latitude, location.longitude)
        return location

    @staticmethod
    def _result(
        ticket: Ticket,
        context: RoutingContext,
        outcome: RoutingOutcome,
        sequence: Optional[int] = None,
    ) -> RoutingResult:
        selected = context.selected
        return RoutingResult(
            ticket_id=ticket.id,
            priority=ticket.priority,
            outcome=outcome,
            assigned_provider_id=selected.provider_id if selected else None,
            assignment_sequence=sequence,
            routing_score=selected.total_score if selected else None,
            explanation=selected.explanation if selected else context.error,
            stage=context.stage,
        )
