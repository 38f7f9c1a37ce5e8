"""
Shared API Dependencies
=======================

Services built once in the application lifespan and handed to routes.
"""

from fastapi import Request

from storedesk.sla.application import IEscalationNotifier
from storedesk.sla.domain import SLAPolicy
from storedesk.triage.application import IClassifier


def get_sla_policy(request: Request) -> SLAPolicy:
    """SLA table loaded at startup."""
    return request.app.state.sla_policy


def get_classifier(request: Request) -> IClassifier:
    return request.app.state.classifier


def get_escalation_notifier(request: Request) -> IEscalationNotifier:
    return request.app.state.escalation_notifier
