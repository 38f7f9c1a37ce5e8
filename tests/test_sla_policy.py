from datetime import timedelta

import pytest
from pydantic import ValidationError

from storedesk.config import TicketPriority, TicketStatus
from storedesk.core import ConfigurationException
from storedesk.sla.domain import EscalationTrigger, SLACalculator, SLAPolicy, SLAPolicyConfig
from storedesk.sla.infrastructure import load_sla_policy

from tests.fakes import T0, make_ticket


@pytest.fixture
def policy():
    return SLAPolicy()


def test_default_table(policy):
    assert policy.as_minutes() == {
        "HIGH": {"assignment": 15, "acceptance": 30, "resolution": 240},
        "MEDIUM": {"assignment": 30, "acceptance": 60, "resolution": 720},
        "LOW": {"assignment": 120, "acceptance": 240, "resolution": 2880},
    }


def test_deadline_is_creation_plus_resolution(policy):
    high = policy.deadline_for(TicketPriority.HIGH, T0)
    medium = policy.deadline_for(TicketPriority.MEDIUM, T0)
    low = policy.deadline_for(TicketPriority.LOW, T0)

    assert high == T0 + timedelta(hours=4)
    assert medium == T0 + timedelta(hours=12)
    assert low == T0 + timedelta(hours=48)
    assert low > medium > high


def test_unknown_priority_falls_back_to_medium(policy):
    assert policy.rule_for("URGENT") == policy.rule_for(TicketPriority.MEDIUM)


def test_policy_table_is_read_only(policy):
    with pytest.raises(TypeError):
        policy.rules[TicketPriority.HIGH] = None


def test_config_normalizes_and_fills_defaults():
    config = SLAPolicyConfig(sla_rules={"high": {"assignment": 5}})
    policy = SLAPolicy.from_config(config)

    assert policy.assignment_timeout(TicketPriority.HIGH) == timedelta(minutes=5)
    assert policy.acceptance_timeout(TicketPriority.HIGH) == timedelta(minutes=30)
    assert policy.resolution_timeout(TicketPriority.LOW) == timedelta(hours=48)


@pytest.mark.parametrize(
    "rules",
    [
        {"URGENT": {"assignment": 5}},
        {"HIGH": {"pickup": 5}},
        {"HIGH": {"assignment": 0}},
        {"HIGH": {"resolution": 2880}, "LOW": {"resolution": 60}},
        {"MEDIUM": {"resolution": 240}},
        {"LOW": {"acceptance": 60}},
    ],
)
def test_config_rejects_bad_tables(rules):
    with pytest.raises(ValidationError):
        SLAPolicyConfig(sla_rules=rules)


def test_load_missing_file_uses_defaults(tmp_path):
    policy = load_sla_policy(tmp_path / "missing.yaml")
    assert policy.as_minutes() == SLAPolicy().as_minutes()


def test_load_yaml_file(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("sla_rules:\n  MEDIUM:\n    assignment: 45\n    acceptance: 90\n    resolution: 600\n")

    policy = load_sla_policy(path)

    assert policy.as_minutes()["MEDIUM"] == {"assignment": 45, "acceptance": 90, "resolution": 600}
    assert policy.as_minutes()["HIGH"]["assignment"] == 15


def test_load_invalid_yaml_raises(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("sla_rules:\n  HIGH:\n    assignment: -1\n")

    with pytest.raises(ConfigurationException):
        load_sla_policy(path)


def test_load_rejects_inverted_deadlines(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("sla_rules:\n  HIGH:\n    resolution: 2880\n  LOW:\n    resolution: 60\n")

    with pytest.raises(ConfigurationException, match="HIGH < MEDIUM < LOW"):
        load_sla_policy(path)


# ========== Violations ==========

def _triggers(ticket, policy, now):
    return [v.trigger for v in SLACalculator.violations(ticket, policy, now)]


def test_open_ticket_breaches_assignment_timeout_strictly(policy):
    ticket = make_ticket("t1", status=TicketStatus.OPEN, priority=TicketPriority.HIGH)

    assert _triggers(ticket, policy, T0 + timedelta(minutes=15)) == []
    assert _triggers(ticket, policy, T0 + timedelta(minutes=15, seconds=1)) == [
        EscalationTrigger.ASSIGNMENT_TIMEOUT
    ]


def test_assigned_ticket_breaches_acceptance_timeout(policy):
    ticket = make_ticket("t1", status=TicketStatus.ASSIGNED, assigned_at=T0)

    assert _triggers(ticket, policy, T0 + timedelta(minutes=30)) == []
    assert _triggers(ticket, policy, T0 + timedelta(minutes=31)) == [EscalationTrigger.ACCEPTANCE_TIMEOUT]


def test_accepted_assignment_is_not_an_acceptance_breach(policy):
    ticket = make_ticket(
        "t1",
        status=TicketStatus.ASSIGNED,
        assigned_at=T0,
        accepted_at=T0 + timedelta(minutes=5),
    )

    assert _triggers(ticket, policy, T0 + timedelta(minutes=45)) == []


def test_in_progress_ticket_breaches_resolution_timeout(policy):
    accepted = T0 + timedelta(minutes=10)
    ticket = make_ticket(
        "t1",
        status=TicketStatus.IN_PROGRESS,
        priority=TicketPriority.MEDIUM,
        accepted_at=accepted,
        sla_deadline=T0 + timedelta(days=2),
    )

    assert _triggers(ticket, policy, accepted + timedelta(hours=12)) == []
    assert _triggers(ticket, policy, accepted + timedelta(hours=12, minutes=1)) == [
        EscalationTrigger.RESOLUTION_TIMEOUT
    ]


def test_deadline_clause_is_reported_last(policy):
    ticket = make_ticket("t1", status=TicketStatus.OPEN)

    assert _triggers(ticket, policy, T0 + timedelta(hours=5)) == [
        EscalationTrigger.ASSIGNMENT_TIMEOUT,
        EscalationTrigger.SLA_DEADLINE,
    ]


@pytest.mark.parametrize("status", [TicketStatus.COMPLETED, TicketStatus.ESCALATED, TicketStatus.REJECTED_BY_TECH])
def test_inactive_tickets_are_not_evaluated(policy, status):
    ticket = make_ticket("t1", status=status)

    assert _triggers(ticket, policy, T0 + timedelta(days=10)) == []
