"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA escalations.

Controllers are thin - they delegate to application services.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storedesk.infrastructure.database import get_session
from storedesk.routing.infrastructure import SQLAlchemyTicketRepository, SQLAlchemyTransactionManager
from storedesk.shared.api.dependencies import get_escalation_notifier, get_sla_policy
from storedesk.sla.application import (
    EscalationListResponse,
    EscalationMonitor,
    EscalationResponse,
    EscalationService,
    IEscalationNotifier,
    SLAPolicyResponse,
    SweepReportResponse,
)
from storedesk.sla.domain import SLAPolicy
from storedesk.sla.infrastructure import SQLAlchemyEscalationRepository

router = APIRouter(prefix="/sla", tags=["SLA Escalation"])
ticket_escalations_router = APIRouter(prefix="/tickets", tags=["SLA Escalation"])


# ========== Example payloads for Swagger ==========

ESCALATION_EXAMPLE = {
    "id": "9e8d7c6b-5a4f-4e3d-2c1b-0a9f8e7d6c5b",
    "ticket_id": "5b0f3c1e-8d2a-4c6b-9f7e-1a2b3c4d5e6f",
    "trigger_event": "Acceptance timeout exceeded",
    "status": "TRIGGERED",
    "escalated_to_user_id": "1a2b3c4d-5e6f-4a7b-8c9d-0e1f2a3b4c5d",
    "created_at": "2025-01-15T10:31:00Z",
    "acknowledged_at": None,
    "resolved_at": None
}


# ========== Dependencies ==========

def build_escalation_monitor(
    session: AsyncSession,
    sla_policy: SLAPolicy,
    notifier: Optional[IEscalationNotifier] = None,
) -> EscalationMonitor:
    """Escalation monitor bound to one session; shared by the route and the scheduler."""
    return EscalationMonitor(
        ticket_repository=SQLAlchemyTicketRepository(session),
        escalation_repository=SQLAlchemyEscalationRepository(session),
        transaction_manager=SQLAlchemyTransactionManager(session),
        sla_policy=sla_policy,
        notifier=notifier,
    )


async def get_escalation_monitor(
    session: AsyncSession = Depends(get_session),
    sla_policy: SLAPolicy = Depends(get_sla_policy),
    notifier: IEscalationNotifier = Depends(get_escalation_notifier),
) -> EscalationMonitor:
    return build_escalation_monitor(session, sla_policy, notifier)


async def get_escalation_service(
    session: AsyncSession = Depends(get_session)
) -> EscalationService:
    """Get escalation service instance."""
    return EscalationService(SQLAlchemyEscalationRepository(session))


# ========== Route Handlers ==========

@router.get(
    "/policy",
    response_model=SLAPolicyResponse,
    summary="Active SLA table",
    description="Assignment, acceptance and resolution timeouts in minutes for each priority."
)
async def get_policy(sla_policy: SLAPolicy = Depends(get_sla_policy)) -> SLAPolicyResponse:
    return SLAPolicyResponse.from_policy(sla_policy)


@router.post(
    "/sweep",
    response_model=SweepReportResponse,
    summary="Run an escalation sweep now",
    description="""
    Evaluate every OPEN, ASSIGNED and IN_PROGRESS ticket against the SLA table.

    Safe to repeat: an escalation that is still open for the same ticket and
    trigger is never created twice.
    """
)
async def run_sweep(
    monitor: EscalationMonitor = Depends(get_escalation_monitor)
) -> SweepReportResponse:
    report = await monitor.run()
    return SweepReportResponse.from_report(report)


@router.get(
    "/escalations/open",
    response_model=EscalationListResponse,
    summary="Open escalations",
    description="TRIGGERED and ACKNOWLEDGED escalations, newest first."
)
async def list_open_escalations(
    limit: int = Query(default=100, ge=1, le=1000),
    service: EscalationService = Depends(get_escalation_service)
) -> EscalationListResponse:
    escalations = await service.open_escalations(limit=limit)
    return EscalationListResponse.from_entities(escalations)


@router.post(
    "/escalations/{escalation_id}/acknowledge",
    response_model=EscalationResponse,
    summary="Acknowledge an escalation",
    responses={
        200: {"content": {"application/json": {"example": ESCALATION_EXAMPLE}}},
        404: {"description": "Escalation not found"},
        409: {"description": "Escalation is not TRIGGERED"},
    }
)
async def acknowledge_escalation(
    escalation_id: str,
    service: EscalationService = Depends(get_escalation_service)
) -> EscalationResponse:
    escalation = await service.acknowledge(escalation_id)
    return EscalationResponse.from_entity(escalation)


@router.post(
    "/escalations/{escalation_id}/resolve",
    response_model=EscalationResponse,
    summary="Resolve an escalation",
    responses={404: {"description": "Escalation not found"}, 409: {"description": "Escalation already resolved"}}
)
async def resolve_escalation(
    escalation_id: str,
    service: EscalationService = Depends(get_escalation_service)
) -> EscalationResponse:
    escalation = await service.resolve(escalation_id)
    return EscalationResponse.from_entity(escalation)


@ticket_escalations_router.get(
    "/{ticket_id}/escalations",
    response_model=EscalationListResponse,
    summary="Escalation history of a ticket"
)
async def get_ticket_escalations(
    ticket_id: str,
    service: EscalationService = Depends(get_escalation_service)
) -> EscalationListResponse:
    escalations = await service.history_for_ticket(ticket_id)
    return EscalationListResponse.from_entities(escalations)


# Export routers with consistent naming
sla_router = router
