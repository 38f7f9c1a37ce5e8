from datetime import timedelta

import pytest

from storedesk.config import AssignmentStatus, TicketPriority, TicketStatus
from storedesk.core import (
    ConfigurationException,
    InvalidLocation,
    InvalidTicketState,
    RepositoryException,
    ResourceNotFoundException,
)
from storedesk.routing.application import AvailabilityFinder, RoutingOrchestrator
from storedesk.routing.domain import RoutingOutcome, RoutingStage

from tests.fakes import T0, InMemoryStoreRepository, failing_classifier, make_provider, make_ticket

KM = 1 / 111.195
COLD_STORAGE_SKILLS = ["Refrigeration", "HVAC", "Electrical"]

DESCRIPTION = "Walk-in freezer at the back is warming up fast"


async def _report(orchestrator, store_id="store-1"):
    return await orchestrator.process_new_ticket(
        description=DESCRIPTION,
        location_in_store="Back room",
        store_id=store_id,
        reporter_user_id="user-1",
    )


async def test_new_ticket_is_classified_and_assigned(db, orchestrator, clock):
    db.add_provider(make_provider("frost", skills=COLD_STORAGE_SKILLS, latitude=5 * KM))

    result = await _report(orchestrator)

    assert result.outcome == RoutingOutcome.ASSIGNED
    assert result.stage == RoutingStage.ASSIGNED
    assert result.assigned_provider_id == "frost"
    assert result.assignment_sequence == 1
    assert result.priority == TicketPriority.HIGH
    assert result.explanation.startswith("Provider frost: total")

    ticket = db.tickets[result.ticket_id]
    assert ticket.status == TicketStatus.ASSIGNED
    assert ticket.assigned_service_provider_id == "frost"
    assert ticket.assigned_at == clock.now
    assert ticket.category == "Facilities"
    assert ticket.subcategory == "Cold Storage"
    assert ticket.sla_deadline == T0 + timedelta(hours=4)

    (assignment,) = db.assignments.values()
    assert assignment.status == AssignmentStatus.PROPOSED
    assert assignment.routing_score == pytest.approx(result.routing_score)
    assert db.providers["frost"].current_load == 1


async def test_best_scored_provider_wins(db, orchestrator):
    db.add_provider(make_provider("generalist", skills=["Electrical"], latitude=1 * KM))
    db.add_provider(make_provider("specialist", skills=COLD_STORAGE_SKILLS, latitude=8 * KM))

    result = await _report(orchestrator)

    assert result.assigned_provider_id == "specialist"


async def test_no_candidates_leaves_ticket_open(db, orchestrator):
    db.add_provider(make_provider("plumber", skills=["Plumbing"]))

    result = await _report(orchestrator)

    assert result.outcome == RoutingOutcome.NO_CANDIDATES
    assert result.requires_manual_routing
    assert result.assigned_provider_id is None
    assert db.tickets[result.ticket_id].status == TicketStatus.OPEN
    assert db.assignments == {}


async def test_classifier_failure_falls_back_and_still_routes(db, orchestrator, classifier):
    classifier.error = failing_classifier().error
    db.add_provider(make_provider("handyman", skills=["General Maintenance"]))

    result = await _report(orchestrator)

    ticket = db.tickets[result.ticket_id]
    assert (ticket.category, ticket.subcategory, ticket.priority) == ("General", "Maintenance", TicketPriority.MEDIUM)
    assert ticket.sla_deadline == T0 + timedelta(hours=12)
    assert result.assigned_provider_id == "handyman"


async def test_unexpected_classifier_error_also_falls_back(db, orchestrator, classifier):
    classifier.error = RuntimeError("socket closed")

    result = await _report(orchestrator)

    assert db.tickets[result.ticket_id].category == "General"
    assert result.stage == RoutingStage.NO_CANDIDATES


async def test_unknown_store_is_not_found(db, orchestrator):
    with pytest.raises(ResourceNotFoundException):
        await _report(orchestrator, store_id="store-404")
    assert db.tickets == {}


async def test_store_with_unusable_location_is_rejected(db, orchestrator):
    db.add_store("store-2", float("nan"), 10.0)

    with pytest.raises(InvalidLocation):
        await _report(orchestrator, store_id="store-2")
    assert db.tickets == {}


async def test_capacity_conflict_moves_to_next_candidate(db, orchestrator, provider_repository):
    db.add_provider(make_provider("first", skills=COLD_STORAGE_SKILLS, latitude=1 * KM))
    db.add_provider(make_provider("second", skills=COLD_STORAGE_SKILLS, latitude=20 * KM))
    provider_repository.filled_concurrently.add("first")

    result = await _report(orchestrator)

    assert result.assigned_provider_id == "second"
    assert [a.service_provider_id for a in db.assignments.values()] == ["second"]
    assert db.providers["second"].current_load == 1


async def test_every_candidate_conflicting_reports_no_candidates(db, orchestrator, provider_repository):
    db.add_provider(make_provider("only", skills=COLD_STORAGE_SKILLS))
    provider_repository.filled_concurrently.add("only")

    result = await _report(orchestrator)

    assert result.outcome == RoutingOutcome.NO_CANDIDATES
    assert "capacity" in result.explanation
    assert db.tickets[result.ticket_id].status == TicketStatus.OPEN
    assert db.assignments == {}


@pytest.fixture
def build_orchestrator(
    db, classifier, provider_repository, ticket_repository, assignment_repository,
    transaction_manager, sla_policy, scorer, clock, id_factory,
):
    def build(max_assignment_attempts):
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
            max_assignment_attempts=max_assignment_attempts,
        )
    return build


async def test_single_attempt_stops_after_first_conflict(db, build_orchestrator, provider_repository):
    db.add_provider(make_provider("first", skills=COLD_STORAGE_SKILLS, latitude=1 * KM))
    db.add_provider(make_provider("second", skills=COLD_STORAGE_SKILLS, latitude=20 * KM))
    provider_repository.filled_concurrently.add("first")

    result = await _report(build_orchestrator(1))

    assert result.outcome == RoutingOutcome.NO_CANDIDATES
    assert db.providers["second"].current_load == 0


@pytest.mark.parametrize("attempts", [0, -1])
def test_attempt_limit_below_one_is_refused(build_orchestrator, attempts):
    with pytest.raises(ConfigurationException):
        build_orchestrator(attempts)


async def test_failed_ticket_write_rolls_back_assignment(db, orchestrator, ticket_repository):
    db.add_provider(make_provider("frost", skills=COLD_STORAGE_SKILLS))
    original_update = ticket_repository.update

    async def failing_update(ticket):
        if ticket.status == TicketStatus.ASSIGNED:
            raise RepositoryException("disk full")
        return await original_update(ticket)

    ticket_repository.update = failing_update

    with pytest.raises(RepositoryException):
        await _report(orchestrator)

    assert db.assignments == {}
    assert db.providers["frost"].current_load == 0


# ========== Rejection and re-routing ==========

async def test_rejection_reroutes_to_next_provider(db, orchestrator):
    db.add_provider(make_provider("near", skills=COLD_STORAGE_SKILLS, latitude=1 * KM))
    db.add_provider(make_provider("far", skills=COLD_STORAGE_SKILLS, latitude=30 * KM))
    first = await _report(orchestrator)
    assert first.assigned_provider_id == "near"

    second = await orchestrator.reject_assignment(first.ticket_id, "near", "Out of spare parts")

    assert second.assigned_provider_id == "far"
    assert second.assignment_sequence == 2
    history = await orchestrator.assignment_history(first.ticket_id)
    assert [(a.service_provider_id, a.status) for a in history] == [
        ("near", AssignmentStatus.REJECTED),
        ("far", AssignmentStatus.PROPOSED),
    ]
    assert history[0].rejection_reason == "Out of spare parts"
    assert db.providers["near"].current_load == 0
    assert db.tickets[first.ticket_id].assigned_service_provider_id == "far"


async def test_rejection_with_nobody_left_reopens_ticket(db, orchestrator):
    db.add_provider(make_provider("solo", skills=COLD_STORAGE_SKILLS))
    first = await _report(orchestrator)

    result = await orchestrator.reject_assignment(first.ticket_id, "solo", "Not our area")

    assert result.outcome == RoutingOutcome.NO_CANDIDATES
    ticket = db.tickets[first.ticket_id]
    assert ticket.status == TicketStatus.OPEN
    assert ticket.assigned_service_provider_id is None


async def test_reject_by_wrong_provider_is_refused(db, orchestrator):
    db.add_provider(make_provider("solo", skills=COLD_STORAGE_SKILLS))
    first = await _report(orchestrator)

    with pytest.raises(InvalidTicketState):
        await orchestrator.reject_assignment(first.ticket_id, "someone-else", "Not mine")


async def test_reroute_open_ticket_once_capacity_frees_up(db, orchestrator):
    result = await _report(orchestrator)
    assert result.outcome == RoutingOutcome.NO_CANDIDATES

    db.add_provider(make_provider("late", skills=COLD_STORAGE_SKILLS))
    rerouted = await orchestrator.reroute(result.ticket_id)

    assert rerouted.assigned_provider_id == "late"
    assert rerouted.assignment_sequence == 1


@pytest.mark.parametrize("status", [TicketStatus.ASSIGNED, TicketStatus.COMPLETED, TicketStatus.ESCALATED])
async def test_reroute_refuses_tickets_that_are_not_waiting(db, orchestrator, status):
    db.add_ticket(make_ticket("t1", status=status))

    with pytest.raises(InvalidTicketState):
        await orchestrator.reroute("t1")


async def test_unknown_ticket_is_not_found(orchestrator):
    with pytest.raises(ResourceNotFoundException):
        await orchestrator.reroute("missing")
    with pytest.raises(ResourceNotFoundException):
        await orchestrator.assignment_history("missing")
