"""
In-memory test doubles for repositories, classifier, notifier and clock.

All repositories share one InMemoryDatabase so the transaction manager can
snapshot and restore every table at once.
"""

import copy
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple

from storedesk.config import (
    ACTIVE_TICKET_STATUSES,
    OPEN_ESCALATION_STATUSES,
    AssignmentStatus,
    ProviderStatus,
    TicketPriority,
    TicketStatus,
)
from storedesk.core import AssignmentConflict, ClassificationFailure, RepositoryException
from storedesk.routing.application.interfaces import (
    IAssignmentRepository,
    IProviderRepository,
    IStoreRepository,
    ITicketHistoryRepository,
    ITicketRepository,
    ITransactionManager,
)
from storedesk.routing.domain import Coordinates, ServiceProvider, Ticket, TicketAssignment
from storedesk.sla.application import IEscalationNotifier, IEscalationRepository
from storedesk.sla.domain import Escalation
from storedesk.triage.application import IClassifier
from storedesk.triage.domain import ClassificationResult

T0 = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_provider(
    provider_id: str,
    skills: Optional[List[str]] = None,
    latitude: Optional[float] = 0.0,
    longitude: Optional[float] = 0.0,
    capacity: int = 10,
    load: int = 0,
    status: ProviderStatus = ProviderStatus.APPROVED,
    active_users: int = 1,
    company_name: Optional[str] = None,
) -> ServiceProvider:
    coordinates = None
    if latitude is not None or longitude is not None:
        coordinates = Coordinates(latitude=latitude, longitude=longitude)
    return ServiceProvider(
        id=provider_id,
        company_name=company_name or f"Provider {provider_id}",
        skills=list(skills or []),
        capacity_per_day=capacity,
        current_load=load,
        status=status,
        coordinates=coordinates,
        active_user_count=active_users,
    )


def make_ticket(
    ticket_id: str,
    status: TicketStatus = TicketStatus.OPEN,
    priority: TicketPriority = TicketPriority.HIGH,
    created_at: datetime = T0,
    sla_deadline: Optional[datetime] = None,
    store_id: str = "store-1",
    category: str = "Facilities",
    subcategory: str = "Cold Storage",
    reporter_user_id: str = "user-1",
    **fields,
) -> Ticket:
    deadline = sla_deadline or created_at + timedelta(hours=4)
    return Ticket(
        id=ticket_id,
        description="Walk-in freezer is warming up",
        location_in_store="Back room",
        store_id=store_id,
        reporter_user_id=reporter_user_id,
        priority=priority,
        status=status,
        created_at=created_at,
        sla_deadline=deadline,
        category=category,
        subcategory=subcategory,
        **fields,
    )


@dataclass
class InMemoryDatabase:
    providers: Dict[str, ServiceProvider] = field(default_factory=dict)
    tickets: Dict[str, Ticket] = field(default_factory=dict)
    assignments: Dict[str, TicketAssignment] = field(default_factory=dict)
    escalations: Dict[str, Escalation] = field(default_factory=dict)
    stores: Dict[str, Coordinates] = field(default_factory=dict)
    store_moderators: Dict[str, str] = field(default_factory=dict)
    completion_stats: Dict[str, Tuple[int, int]] = field(default_factory=dict)

    def add_provider(self, provider: ServiceProvider) -> ServiceProvider:
        self.providers[provider.id] = provider
        return provider

    def add_store(self, store_id: str, latitude, longitude, moderator_id: Optional[str] = None) -> None:
        self.stores[store_id] = Coordinates(latitude=latitude, longitude=longitude)
        if moderator_id:
            self.store_moderators[store_id] = moderator_id

    def add_ticket(self, ticket: Ticket) -> Ticket:
        self.tickets[ticket.id] = ticket
        return ticket

    def snapshot(self) -> dict:
        return copy.deepcopy(self.__dict__)

    def restore(self, snapshot: dict) -> None:
        self.__dict__.update(snapshot)


class InMemoryTransactionManager(ITransactionManager):
    def __init__(self, db: InMemoryDatabase):
        self._db = db
        self.commits = 0
        self.rollbacks = 0
        self.durable_commits = 0
        self.fail_commit = False

    @asynccontextmanager
    async def atomic(self):
        snapshot = self._db.snapshot()
        try:
            yield
        except BaseException:
            self._db.restore(snapshot)
            self.rollbacks += 1
            raise
        self.commits += 1

    async def commit(self):
        if self.fail_commit:
            raise RuntimeError("commit failed")
        self.durable_commits += 1


class InMemoryProviderRepository(IProviderRepository):
    def __init__(self, db: InMemoryDatabase):
        self._db = db
        self.fail_find = False
        # Providers another router fills up just before our increment lands
        self.filled_concurrently: Set[str] = set()
        self.increments: List[str] = []

    async def find_approved_with_capacity(self) -> List[ServiceProvider]:
        if self.fail_find:
            raise RepositoryException("provider table unavailable")
        return [
            replace(p, skills=list(p.skills))
            for p in self._db.providers.values()
            if p.status == ProviderStatus.APPROVED and p.current_load < p.capacity_per_day
        ]

    async def increment_load(self, provider_id: str, delta: int = 1) -> None:
        provider = self._db.providers[provider_id]
        if provider_id in self.filled_concurrently:
            provider.current_load = provider.capacity_per_day
        if provider.current_load + delta > provider.capacity_per_day:
            raise AssignmentConflict(provider_id)
        provider.current_load += delta
        self.increments.append(provider_id)

    async def decrement_load(self, provider_id: str, delta: int = 1) -> None:
        provider = self._db.providers[provider_id]
        provider.current_load = max(0, provider.current_load - delta)


class InMemoryTicketRepository(ITicketRepository, ITicketHistoryRepository):
    def __init__(self, db: InMemoryDatabase):
        self._db = db
        self.fail_update_for: Set[str] = set()
        self.fail_find_active = False
        self.fail_history = False

    def _read(self, ticket: Ticket) -> Ticket:
        return replace(ticket, store_moderator_id=self._db.store_moderators.get(ticket.store_id))

    async def create(self, ticket: Ticket) -> Ticket:
        self._db.tickets[ticket.id] = replace(ticket)
        return ticket

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        ticket = self._db.tickets.get(ticket_id)
        return self._read(ticket) if ticket else None

    async def update(self, ticket: Ticket) -> Ticket:
        if ticket.id in self.fail_update_for:
            raise RepositoryException(f"write failed for {ticket.id}")
        if ticket.id not in self._db.tickets:
            raise RepositoryException(f"Ticket {ticket.id} not found")
        self._db.tickets[ticket.id] = replace(ticket, store_moderator_id=None)
        return ticket

    async def update_status(self, ticket_id: str, status: TicketStatus) -> None:
        if ticket_id in self.fail_update_for:
            raise RepositoryException(f"write failed for {ticket_id}")
        self._db.tickets[ticket_id].status = status

    async def find_active(self) -> List[Ticket]:
        if self.fail_find_active:
            raise RepositoryException("ticket table unavailable")
        return [
            self._read(t)
            for t in sorted(self._db.tickets.values(), key=lambda t: (t.created_at, t.id))
            if t.status in ACTIVE_TICKET_STATUSES
        ]

    async def completion_stats(self, provider_id: str, since: datetime) -> Tuple[int, int]:
        if self.fail_history:
            raise RepositoryException("history unavailable")
        return self._db.completion_stats.get(provider_id, (0, 0))


class InMemoryAssignmentRepository(IAssignmentRepository):
    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def create(self, assignment: TicketAssignment) -> TicketAssignment:
        for existing in self._db.assignments.values():
            if (
                existing.ticket_id == assignment.ticket_id
                and existing.assignment_sequence == assignment.assignment_sequence
            ):
                raise RepositoryException("duplicate assignment sequence")
        self._db.assignments[assignment.id] = replace(assignment)
        return assignment

    async def find_latest_for_ticket(self, ticket_id: str) -> Optional[TicketAssignment]:
        history = await self.list_for_ticket(ticket_id)
        return history[-1] if history else None

    async def list_for_ticket(self, ticket_id: str) -> List[TicketAssignment]:
        return sorted(
            (replace(a) for a in self._db.assignments.values() if a.ticket_id == ticket_id),
            key=lambda a: a.assignment_sequence,
        )

    async def update_status(
        self,
        assignment_id: str,
        status: AssignmentStatus,
        rejection_reason: Optional[str] = None
    ) -> None:
        assignment = self._db.assignments[assignment_id]
        assignment.status = status
        if rejection_reason is not None:
            assignment.rejection_reason = rejection_reason


class InMemoryStoreRepository(IStoreRepository):
    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def get_location(self, store_id: str) -> Optional[Coordinates]:
        return self._db.stores.get(store_id)


class InMemoryEscalationRepository(IEscalationRepository):
    """Rejects a second open escalation per (ticket, trigger) like the unique index."""

    def __init__(self, db: InMemoryDatabase):
        self._db = db
        # Simulates a concurrent sweeper: find_open misses, insert still collides
        self.blind_find_open = False

    def _open(self, ticket_id: str, trigger_event: str) -> Optional[Escalation]:
        for escalation in self._db.escalations.values():
            if (
                escalation.ticket_id == ticket_id
                and escalation.trigger_event == trigger_event
                and escalation.status in OPEN_ESCALATION_STATUSES
            ):
                return escalation
        return None

    async def find_open(self, ticket_id: str, trigger_event: str) -> Optional[Escalation]:
        if self.blind_find_open:
            return None
        found = self._open(ticket_id, trigger_event)
        return replace(found) if found else None

    async def create(self, escalation: Escalation) -> Optional[Escalation]:
        if self._open(escalation.ticket_id, escalation.trigger_event) is not None:
            return None
        self._db.escalations[escalation.id] = replace(escalation)
        return escalation

    async def get_by_id(self, escalation_id: str) -> Optional[Escalation]:
        escalation = self._db.escalations.get(escalation_id)
        return replace(escalation) if escalation else None

    async def update(self, escalation: Escalation) -> Escalation:
        self._db.escalations[escalation.id] = replace(escalation)
        return escalation

    async def list_for_ticket(self, ticket_id: str) -> List[Escalation]:
        return sorted(
            (replace(e) for e in self._db.escalations.values() if e.ticket_id == ticket_id),
            key=lambda e: (e.created_at, e.id),
        )

    async def list_open(self, limit: int = 100) -> List[Escalation]:
        found = [replace(e) for e in self._db.escalations.values() if e.status in OPEN_ESCALATION_STATUSES]
        found.sort(key=lambda e: e.created_at, reverse=True)
        return found[:limit]


class StubClassifier(IClassifier):
    """Returns a fixed classification, or raises when given an exception."""

    def __init__(self, result: Optional[ClassificationResult] = None, error: Optional[Exception] = None):
        self.result = result or ClassificationResult(
            category="Facilities",
            subcategory="Cold Storage",
            priority=TicketPriority.HIGH,
            confidence=0.92,
            reasoning="Freezer failure risks product spoilage",
            model_used="stub",
        )
        self.error = error
        self.calls: List[str] = []

    async def classify(self, description: str) -> ClassificationResult:
        self.calls.append(description)
        if self.error is not None:
            raise self.error
        return self.result


def failing_classifier() -> StubClassifier:
    return StubClassifier(error=ClassificationFailure("model returned garbage"))


class RecordingNotifier(IEscalationNotifier):
    def __init__(self, fail: bool = False):
        self.sent: List[Tuple[Escalation, Ticket]] = []
        self.fail = fail

    async def notify(self, escalation: Escalation, ticket: Ticket) -> bool:
        if self.fail:
            raise RuntimeError("slack down")
        self.sent.append((escalation, ticket))
        return True
