"""
Routing Infrastructure Repositories
=====================================

Concrete implementations of the routing repository interfaces using
SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storedesk.config import (
    ACTIVE_TICKET_STATUSES,
    AssignmentStatus,
    ProviderStatus,
    TicketPriority,
    TicketStatus,
)
from storedesk.core import AssignmentConflict, RepositoryException
from storedesk.infrastructure.database import as_utc, to_uuid
from storedesk.routing.application.interfaces import (
    IAssignmentRepository,
    IProviderRepository,
    IStoreRepository,
    ITicketHistoryRepository,
    ITicketRepository,
    ITransactionManager,
)
from storedesk.routing.domain import Coordinates, ServiceProvider, Ticket, TicketAssignment
from storedesk.routing.infrastructure.models import (
    ServiceProviderModel,
    StoreModel,
    TicketAssignmentModel,
    TicketModel,
    UserModel,
)


# ========== Mappers ==========

def _str_id(value) -> Optional[str]:
    return str(value) if value is not None else None


def provider_to_entity(model: ServiceProviderModel, active_user_count: int = 0) -> ServiceProvider:
    coordinates = None
    if model.latitude is not None and model.longitude is not None:
        coordinates = Coordinates(latitude=model.latitude, longitude=model.longitude)
    return ServiceProvider(
        id=str(model.id),
        company_name=model.company_name,
        skills=list(model.skills or []),
        capacity_per_day=model.capacity_per_day,
        current_load=model.current_load,
        status=ProviderStatus(model.status),
        coordinates=coordinates,
        active_user_count=active_user_count or 0,
    )


def ticket_to_entity(model: TicketModel, store_moderator_id=None) -> Ticket:
    return Ticket(
        id=str(model.id),
        description=model.description,
        location_in_store=model.location_in_store,
        store_id=str(model.store_id),
        reporter_user_id=str(model.reporter_user_id),
        priority=TicketPriority(model.priority),
        status=TicketStatus(model.status),
        created_at=as_utc(model.created_at),
        sla_deadline=as_utc(model.sla_deadline),
        category=model.category,
        subcategory=model.subcategory,
        classification_confidence=model.classification_confidence,
        qr_asset_id=model.qr_asset_id,
        assigned_service_provider_id=_str_id(model.assigned_service_provider_id),
        assigned_at=as_utc(model.assigned_at),
        accepted_at=as_utc(model.accepted_at),
        completed_at=as_utc(model.completed_at),
        store_moderator_id=_str_id(store_moderator_id),
    )


def assignment_to_entity(model: TicketAssignmentModel) -> TicketAssignment:
    return TicketAssignment(
        id=str(model.id),
        ticket_id=str(model.ticket_id),
        service_provider_id=str(model.service_provider_id),
        assignment_sequence=model.assignment_sequence,
        status=AssignmentStatus(model.status),
        created_at=as_utc(model.created_at),
        routing_score=model.routing_score,
        rejection_reason=model.rejection_reason,
    )


def _require_uuid(value: str, resource: str):
    parsed = to_uuid(value)
    if parsed is None:
        raise RepositoryException(f"Invalid {resource} id: {value}", {"id": str(value)})
    return parsed


# ========== Repositories ==========

class SQLAlchemyProviderRepository(IProviderRepository):
    """
    SQLAlchemy implementation of provider repository.

    Load changes are single conditional UPDATE statements so capacity is
    re-checked by the database at write time.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _active_user_count():
        return (
            select(func.count(UserModel.id))
            .where(
                UserModel.service_provider_id == ServiceProviderModel.id,
                UserModel.is_active.is_(True),
            )
            .correlate(ServiceProviderModel)
            .scalar_subquery()
        )

    async def find_approved_with_capacity(self) -> List[ServiceProvider]:
        """Approved providers below capacity, with their active user count."""
        stmt = (
            select(ServiceProviderModel, self._active_user_count().label("active_user_count"))
            .where(
                ServiceProviderModel.status == ProviderStatus.APPROVED.value,
                ServiceProviderModel.current_load < ServiceProviderModel.capacity_per_day,
            )
            .order_by(ServiceProviderModel.id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load providers: {e}")

        return [provider_to_entity(model, count) for model, count in result.all()]

    async def increment_load(self, provider_id: str, delta: int = 1) -> None:
        """
        Add to current_load only while the result stays within capacity.

        Raises:
            AssignmentConflict: If no row was updated
        """
        stmt = (
            update(ServiceProviderModel)
            .where(
                ServiceProviderModel.id == _require_uuid(provider_id, "provider"),
                ServiceProviderModel.current_load + delta <= ServiceProviderModel.capacity_per_day,
            )
            .values(current_load=ServiceProviderModel.current_load + delta)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to increment load for provider {provider_id}: {e}")

        if result.rowcount == 0:
            raise AssignmentConflict(provider_id)

    async def decrement_load(self, provider_id: str, delta: int = 1) -> None:
        """Subtract from current_load, clamped at zero."""
        remaining = ServiceProviderModel.current_load - delta
        stmt = (
            update(ServiceProviderModel)
            .where(ServiceProviderModel.id == _require_uuid(provider_id, "provider"))
            .values(current_load=case((remaining < 0, 0), else_=remaining))
            .execution_options(synchronize_session=False)
        )
        try:
            await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to decrement load for provider {provider_id}: {e}")


class SQLAlchemyTicketRepository(ITicketRepository, ITicketHistoryRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Reads join the store so escalations know the store moderator.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    def _select_with_moderator(self):
        return (
            select(TicketModel, StoreModel.moderator_user_id)
            .outerjoin(StoreModel, StoreModel.id == TicketModel.store_id)
            .execution_options(populate_existing=True)
        )

    async def create(self, ticket: Ticket) -> Ticket:
        """Create new ticket."""
        model = TicketModel(
            id=_require_uuid(ticket.id, "ticket"),
            description=ticket.description,
            location_in_store=ticket.location_in_store,
            qr_asset_id=ticket.qr_asset_id,
            store_id=_require_uuid(ticket.store_id, "store"),
            reporter_user_id=_require_uuid(ticket.reporter_user_id, "user"),
            category=ticket.category,
            subcategory=ticket.subcategory,
            classification_confidence=ticket.classification_confidence,
            priority=ticket.priority.value,
            status=ticket.status.value,
            created_at=ticket.created_at,
            sla_deadline=ticket.sla_deadline,
        )
        self._session.add(model)
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create ticket: {e}")
        return ticket

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = self._select_with_moderator().where(TicketModel.id == ticket_uuid)
        try:
            row = (await self._session.execute(stmt)).first()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load ticket {ticket_id}: {e}")

        return ticket_to_entity(row[0], row[1]) if row else None

    async def update(self, ticket: Ticket) -> Ticket:
        """Persist status, assignment and lifecycle timestamps."""
        try:
            model = await self._session.get(TicketModel, _require_uuid(ticket.id, "ticket"))
            if model is None:
                raise RepositoryException(f"Ticket {ticket.id} not found")

            model.status = ticket.status.value
            model.assigned_service_provider_id = to_uuid(ticket.assigned_service_provider_id)
            model.assigned_at = ticket.assigned_at
            model.accepted_at = ticket.accepted_at
            model.completed_at = ticket.completed_at

            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to update ticket {ticket.id}: {e}")
        return ticket

    async def update_status(self, ticket_id: str, status: TicketStatus) -> None:
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == _require_uuid(ticket_id, "ticket"))
            .values(status=status.value)
            .execution_options(synchronize_session=False)
        )
        try:
            await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to update status of ticket {ticket_id}: {e}")

    async def find_active(self) -> List[Ticket]:
        """Tickets that are OPEN, ASSIGNED or IN_PROGRESS, oldest first."""
        stmt = (
            self._select_with_moderator()
            .where(TicketModel.status.in_([s.value for s in ACTIVE_TICKET_STATUSES]))
            .order_by(TicketModel.created_at, TicketModel.id)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load active tickets: {e}")

        return [ticket_to_entity(model, moderator_id) for model, moderator_id in result.all()]

    async def completion_stats(self, provider_id: str, since: datetime) -> tuple[int, int]:
        """(completed, completed within SLA) for a provider since a point in time."""
        provider_uuid = to_uuid(provider_id)
        if provider_uuid is None:
            return 0, 0

        within_sla = case((TicketModel.completed_at <= TicketModel.sla_deadline, 1), else_=0)
        stmt = select(func.count(TicketModel.id), func.coalesce(func.sum(within_sla), 0)).where(
            and_(
                TicketModel.assigned_service_provider_id == provider_uuid,
                TicketModel.status == TicketStatus.COMPLETED.value,
                TicketModel.completed_at.is_not(None),
                TicketModel.completed_at >= since,
            )
        )
        try:
            completed, on_time = (await self._session.execute(stmt)).one()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load history for provider {provider_id}: {e}")

        return int(completed or 0), int(on_time or 0)


class SQLAlchemyAssignmentRepository(IAssignmentRepository):
    """SQLAlchemy implementation of assignment repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, assignment: TicketAssignment) -> TicketAssignment:
        """Create new assignment."""
        model = TicketAssignmentModel(
            id=_require_uuid(assignment.id, "assignment"),
            ticket_id=_require_uuid(assignment.ticket_id, "ticket"),
            service_provider_id=_require_uuid(assignment.service_provider_id, "provider"),
            assignment_sequence=assignment.assignment_sequence,
            status=assignment.status.value,
            routing_score=assignment.routing_score,
            rejection_reason=assignment.rejection_reason,
            created_at=assignment.created_at,
        )
        self._session.add(model)
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create assignment: {e}")
        return assignment

    async def find_latest_for_ticket(self, ticket_id: str) -> Optional[TicketAssignment]:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = (
            select(TicketAssignmentModel)
            .where(TicketAssignmentModel.ticket_id == ticket_uuid)
            .order_by(TicketAssignmentModel.assignment_sequence.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        try:
            model = (await self._session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load assignments for ticket {ticket_id}: {e}")

        return assignment_to_entity(model) if model else None

    async def list_for_ticket(self, ticket_id: str) -> List[TicketAssignment]:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return []

        stmt = (
            select(TicketAssignmentModel)
            .where(TicketAssignmentModel.ticket_id == ticket_uuid)
            .order_by(TicketAssignmentModel.assignment_sequence)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load assignments for ticket {ticket_id}: {e}")

        return [assignment_to_entity(model) for model in result.scalars().all()]

    async def update_status(
        self,
        assignment_id: str,
        status: AssignmentStatus,
        rejection_reason: Optional[str] = None
    ) -> None:
        values = {"status": status.value}
        if rejection_reason is not None:
            values["rejection_reason"] = rejection_reason

        stmt = (
            update(TicketAssignmentModel)
            .where(TicketAssignmentModel.id == _require_uuid(assignment_id, "assignment"))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to update assignment {assignment_id}: {e}")


class SQLAlchemyStoreRepository(IStoreRepository):
    """Store lookups."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_location(self, store_id: str) -> Optional[Coordinates]:
        store_uuid = to_uuid(store_id)
        if store_uuid is None:
            return None

        stmt = select(StoreModel.latitude, StoreModel.longitude).where(StoreModel.id == store_uuid)
        try:
            row = (await self._session.execute(stmt)).first()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load store {store_id}: {e}")

        if row is None:
            return None
        return Coordinates(latitude=row.latitude, longitude=row.longitude)


class SQLAlchemyTransactionManager(ITransactionManager):
    """
    Savepoint-based unit of work on the request's session.

    The outer transaction stays owned by the session dependency; a failure
    inside atomic() rolls back only the savepoint.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        async with self._session.begin_nested():
            yield

    async def commit(self) -> None:
        await self._session.commit()
