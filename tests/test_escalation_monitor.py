from datetime import timedelta

import pytest

from storedesk.config import EscalationStatus, TicketPriority, TicketStatus
from storedesk.core import RepositoryException
from storedesk.sla.application import EscalationMonitor
from storedesk.sla.domain import EscalationTrigger

from tests.fakes import T0, RecordingNotifier, make_ticket


async def test_unaccepted_high_ticket_escalates_once(db, monitor, clock, notifier):
    db.add_ticket(make_ticket("t1", status=TicketStatus.ASSIGNED, assigned_at=T0, assigned_service_provider_id="p1"))

    clock.now = T0 + timedelta(minutes=31)
    first = await monitor.run()

    assert [e.trigger_event for e in first.escalations_created] == ["Acceptance timeout exceeded"]
    escalation = first.escalations_created[0]
    assert escalation.status == EscalationStatus.TRIGGERED
    assert escalation.escalated_to_user_id == "moderator-1"
    assert escalation.created_at == clock.now
    assert len(notifier.sent) == 1

    clock.now = T0 + timedelta(minutes=32)
    second = await monitor.run()

    assert second.escalations_created == []
    assert second.duplicates_skipped == 1
    assert len(db.escalations) == 1
    assert len(notifier.sent) == 1


async def test_nothing_due_creates_nothing(db, monitor, clock):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))

    clock.now = T0 + timedelta(minutes=15)
    report = await monitor.sweep()

    assert report.tickets_evaluated == 1
    assert report.created_count == 0


async def test_missed_deadline_escalates_ticket(db, monitor, clock):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN, priority=TicketPriority.HIGH))

    clock.now = T0 + timedelta(hours=4, minutes=1)
    report = await monitor.sweep()

    triggers = sorted(e.trigger_event for e in report.escalations_created)
    assert triggers == sorted([EscalationTrigger.ASSIGNMENT_TIMEOUT.value, EscalationTrigger.SLA_DEADLINE.value])
    assert report.tickets_escalated == ["t1"]
    assert db.tickets["t1"].status == TicketStatus.ESCALATED

    # Escalated tickets leave the active set
    clock.advance(minutes=5)
    again = await monitor.sweep()
    assert again.tickets_evaluated == 0


async def test_timeout_alone_does_not_change_ticket_status(db, monitor, clock):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))

    clock.now = T0 + timedelta(minutes=20)
    await monitor.sweep()

    assert db.tickets["t1"].status == TicketStatus.OPEN


async def test_resolved_escalation_allows_a_new_one(db, monitor, clock, escalation_service):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))
    clock.now = T0 + timedelta(minutes=20)
    first = await monitor.sweep()
    await escalation_service.resolve(first.escalations_created[0].id)

    clock.advance(minutes=1)
    second = await monitor.sweep()

    assert second.created_count == 1
    assert len(db.escalations) == 2


async def test_acknowledged_escalation_still_blocks_duplicates(db, monitor, clock, escalation_service):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))
    clock.now = T0 + timedelta(minutes=20)
    first = await monitor.sweep()
    await escalation_service.acknowledge(first.escalations_created[0].id)

    clock.advance(minutes=1)
    second = await monitor.sweep()

    assert second.created_count == 0
    assert second.duplicates_skipped == 1


async def test_insert_race_is_counted_as_duplicate(db, monitor, clock, escalation_repository):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))
    clock.now = T0 + timedelta(minutes=20)
    await monitor.sweep()

    escalation_repository.blind_find_open = True
    clock.advance(minutes=1)
    report = await monitor.sweep()

    assert report.created_count == 0
    assert report.duplicates_skipped == 1
    assert len(db.escalations) == 1


async def test_one_failing_ticket_does_not_stop_the_sweep(db, monitor, clock, ticket_repository):
    db.add_ticket(make_ticket("broken", status=TicketStatus.OPEN, created_at=T0 - timedelta(hours=6)))
    db.add_ticket(make_ticket("fine", status=TicketStatus.OPEN))
    ticket_repository.fail_update_for.add("broken")

    clock.now = T0 + timedelta(minutes=20)
    report = await monitor.sweep()

    assert report.failed_ticket_ids == ["broken"]
    assert [e.ticket_id for e in report.escalations_created] == ["fine"]
    # The failed ticket's escalations were rolled back with it
    assert {e.ticket_id for e in db.escalations.values()} == {"fine"}
    assert db.tickets["broken"].status == TicketStatus.OPEN


async def test_notifier_failure_is_not_fatal(
    db, ticket_repository, escalation_repository, transaction_manager, sla_policy, clock
):
    monitor = EscalationMonitor(
        ticket_repository=ticket_repository,
        escalation_repository=escalation_repository,
        transaction_manager=transaction_manager,
        sla_policy=sla_policy,
        notifier=RecordingNotifier(fail=True),
        clock=clock,
    )
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))

    clock.now = T0 + timedelta(minutes=20)
    report = await monitor.run()

    assert report.created_count == 1
    assert len(db.escalations) == 1


async def test_sweep_without_notifier(db, ticket_repository, escalation_repository, transaction_manager, sla_policy, clock):
    monitor = EscalationMonitor(ticket_repository, escalation_repository, transaction_manager, sla_policy, clock=clock)
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))

    clock.now = T0 + timedelta(minutes=20)
    report = await monitor.run()

    assert report.created_count == 1


async def test_unreadable_ticket_table_fails_the_sweep(monitor, ticket_repository):
    ticket_repository.fail_find_active = True

    with pytest.raises(RepositoryException):
        await monitor.sweep()


async def test_report_dict(db, monitor, clock):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))
    clock.now = T0 + timedelta(minutes=20)

    report = (await monitor.sweep()).to_dict()

    assert report["tickets_evaluated"] == 1
    assert report["escalations_created"] == 1
    assert report["started_at"] == clock.now.isoformat()


async def test_sweep_alone_announces_nothing(db, monitor, clock, notifier):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))
    clock.now = T0 + timedelta(minutes=20)

    report = await monitor.sweep()

    assert report.created_count == 1
    assert notifier.sent == []
    assert [e.id for e, _ in report.pending_notifications] == [report.escalations_created[0].id]


async def test_run_notifies_after_commit(db, monitor, clock, notifier, transaction_manager):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))
    clock.now = T0 + timedelta(minutes=20)

    report = await monitor.run()

    assert transaction_manager.durable_commits == 1
    assert [(e.ticket_id, t.id) for e, t in notifier.sent] == [("t1", "t1")]
    assert report.pending_notifications == []


async def test_failed_commit_sends_no_notification(db, monitor, clock, notifier, transaction_manager):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN))
    transaction_manager.fail_commit = True
    clock.now = T0 + timedelta(minutes=20)

    with pytest.raises(RuntimeError):
        await monitor.run()

    assert notifier.sent == []


async def test_notify_counts_deliveries(db, monitor, clock, notifier):
    db.add_ticket(make_ticket("t1", status=TicketStatus.OPEN, priority=TicketPriority.HIGH))
    clock.now = T0 + timedelta(hours=4, minutes=1)
    report = await monitor.sweep()

    delivered = await monitor.notify(report)

    assert delivered == 2
    assert len(notifier.sent) == 2
    assert await monitor.notify(report) == 0
