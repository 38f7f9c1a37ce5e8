"""
Routing Controllers (API Routes)
=================================

FastAPI routes for ticket reporting, rejection and re-routing.

Controllers are thin - they delegate to application services.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storedesk.infrastructure.database import get_session
from storedesk.routing.application import AvailabilityFinder, ProviderScorer, RoutingOrchestrator
from storedesk.routing.application.dto import (
    AssignmentHistoryResponse,
    AssignmentRejectRequest,
    AssignmentResponse,
    RoutingResultResponse,
    TicketCreateRequest,
)
from storedesk.routing.infrastructure import (
    SQLAlchemyAssignmentRepository,
    SQLAlchemyProviderRepository,
    SQLAlchemyStoreRepository,
    SQLAlchemyTicketRepository,
    SQLAlchemyTransactionManager,
)
from storedesk.shared.api.dependencies import get_classifier, get_sla_policy
from storedesk.sla.domain import SLAPolicy
from storedesk.triage.application import IClassifier

router = APIRouter(prefix="/tickets", tags=["Ticket Routing"])


# ========== Example payloads for Swagger ==========

ROUTING_RESULT_EXAMPLE = {
    "ticket_id": "5b0f3c1e-8d2a-4c6b-9f7e-1a2b3c4d5e6f",
    "priority": "HIGH",
    "outcome": "ASSIGNED",
    "assigned_provider_id": "0c9d8e7f-6a5b-4c3d-2e1f-0a9b8c7d6e5f",
    "assignment_sequence": 1,
    "routing_score": 0.8125,
    "explanation": (
        "CoolTech Services: total 0.813 = skill 1.00 x 0.30 + availability 0.80 x 0.30 + "
        "proximity 0.82 x 0.40, 9.1 km + performance 0.70 x 0.00"
    ),
    "requires_manual_routing": False
}


# ========== Dependencies ==========

async def get_routing_orchestrator(
    session: AsyncSession = Depends(get_session),
    classifier: IClassifier = Depends(get_classifier),
    sla_policy: SLAPolicy = Depends(get_sla_policy),
) -> RoutingOrchestrator:
    """Get routing orchestrator bound to the request session."""
    providers = SQLAlchemyProviderRepository(session)
    tickets = SQLAlchemyTicketRepository(session)
    return RoutingOrchestrator(
        classifier=classifier,
        availability_finder=AvailabilityFinder(providers),
        scorer=ProviderScorer(tickets),
        ticket_repository=tickets,
        assignment_repository=SQLAlchemyAssignmentRepository(session),
        provider_repository=providers,
        store_repository=SQLAlchemyStoreRepository(session),
        transaction_manager=SQLAlchemyTransactionManager(session),
        sla_policy=sla_policy,
    )


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=RoutingResultResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report an issue",
    description="""
    Create a ticket and route it to the best available service provider.

    The description is classified into category, subcategory and priority;
    when classification fails the ticket is still created as General /
    Maintenance / MEDIUM.

    **Outcome**:
    - `ASSIGNED`: a provider was selected and its load incremented
    - `NO_CANDIDATES`: the ticket stays OPEN for later routing
    """,
    responses={
        201: {"content": {"application/json": {"example": ROUTING_RESULT_EXAMPLE}}},
        404: {"description": "Store not found"},
        422: {"description": "Invalid request or store location"},
    }
)
async def create_ticket(
    request: TicketCreateRequest,
    orchestrator: RoutingOrchestrator = Depends(get_routing_orchestrator)
) -> RoutingResultResponse:
    result = await orchestrator.process_new_ticket(
        description=request.description,
        location_in_store=request.location_in_store,
        store_id=request.store_id,
        reporter_user_id=request.reporter_user_id,
        qr_asset_id=request.qr_asset_id,
    )
    return RoutingResultResponse.from_result(result)


@router.post(
    "/{ticket_id}/reject",
    response_model=RoutingResultResponse,
    summary="Reject an assignment",
    description="Technician rejection: frees the provider's capacity and re-routes the ticket to someone else.",
    responses={404: {"description": "Ticket not found"}, 409: {"description": "Ticket not assigned to this provider"}}
)
async def reject_assignment(
    ticket_id: str,
    request: AssignmentRejectRequest,
    orchestrator: RoutingOrchestrator = Depends(get_routing_orchestrator)
) -> RoutingResultResponse:
    result = await orchestrator.reject_assignment(ticket_id, request.provider_id, request.reason)
    return RoutingResultResponse.from_result(result)


@router.post(
    "/{ticket_id}/reroute",
    response_model=RoutingResultResponse,
    summary="Re-route an unassigned ticket",
    responses={404: {"description": "Ticket not found"}, 409: {"description": "Ticket is not awaiting routing"}}
)
async def reroute_ticket(
    ticket_id: str,
    orchestrator: RoutingOrchestrator = Depends(get_routing_orchestrator)
) -> RoutingResultResponse:
    result = await orchestrator.reroute(ticket_id)
    return RoutingResultResponse.from_result(result)


@router.get(
    "/{ticket_id}/assignments",
    response_model=AssignmentHistoryResponse,
    summary="Assignment history",
    description="Every routing attempt for a ticket, ordered by sequence. The last one is authoritative."
)
async def get_assignment_history(
    ticket_id: str,
    orchestrator: RoutingOrchestrator = Depends(get_routing_orchestrator)
) -> AssignmentHistoryResponse:
    assignments = await orchestrator.assignment_history(ticket_id)
    return AssignmentHistoryResponse(
        ticket_id=ticket_id,
        assignments=[AssignmentResponse.from_entity(a) for a in assignments],
        total=len(assignments),
    )


# Export router with consistent naming
routing_router = router
