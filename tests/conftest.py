"""Shared fixtures: an in-memory world wired into the routing and SLA services."""

import itertools

import pytest

from storedesk.routing.application import AvailabilityFinder, ProviderScorer, RoutingOrchestrator
from storedesk.sla.application import EscalationMonitor, EscalationService
from storedesk.sla.domain import SLAPolicy

from tests.fakes import (
    FixedClock,
    InMemoryAssignmentRepository,
    InMemoryDatabase,
    InMemoryEscalationRepository,
    InMemoryProviderRepository,
    InMemoryStoreRepository,
    InMemoryTicketRepository,
    InMemoryTransactionManager,
    RecordingNotifier,
    StubClassifier,
)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def db():
    database = InMemoryDatabase()
    database.add_store("store-1", 0.0, 0.0, moderator_id="moderator-1")
    return database


@pytest.fixture
def provider_repository(db):
    return InMemoryProviderRepository(db)


@pytest.fixture
def ticket_repository(db):
    return InMemoryTicketRepository(db)


@pytest.fixture
def assignment_repository(db):
    return InMemoryAssignmentRepository(db)


@pytest.fixture
def escalation_repository(db):
    return InMemoryEscalationRepository(db)


@pytest.fixture
def transaction_manager(db):
    return InMemoryTransactionManager(db)


@pytest.fixture
def sla_policy():
    return SLAPolicy()


@pytest.fixture
def classifier():
    return StubClassifier()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scorer(ticket_repository, clock):
    return ProviderScorer(ticket_repository, clock=clock)


@pytest.fixture
def orchestrator(
    db,
    classifier,
    provider_repository,
    ticket_repository,
    assignment_repository,
    transaction_manager,
    sla_policy,
    scorer,
    clock,
    id_factory,
):
    return RoutingOrchestrator(
        classifier=classifier,
        availability_finder=AvailabilityFinder(provider_repository),
        scorer=scorer,
        ticket_repository=ticket_repository,
        assignment_repository=assignment_repository,
        provider_repository=provider_repository,
        store_repository=InMemoryStoreRepository(db),
        transaction_manager=transaction_manager,
        sla_policy=sla_policy,
        clock=clock,
        id_factory=id_factory,
        max_assignment_attempts=3,
    )


@pytest.fixture
def monitor(ticket_repository, escalation_repository, transaction_manager, sla_policy, notifier, clock, id_factory):
    return EscalationMonitor(
        ticket_repository=ticket_repository,
        escalation_repository=escalation_repository,
        transaction_manager=transaction_manager,
        sla_policy=sla_policy,
        notifier=notifier,
        clock=clock,
        id_factory=id_factory,
    )


@pytest.fixture
def escalation_service(escalation_repository, clock):
    return EscalationService(escalation_repository, clock=clock)
