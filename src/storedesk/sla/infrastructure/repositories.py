"""
SLA Infrastructure Repositories
=================================

Concrete implementation of the escalation repository using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storedesk.config import EscalationStatus, OPEN_ESCALATION_STATUSES
from storedesk.core import RepositoryException
from storedesk.infrastructure.database import as_utc, to_uuid
from storedesk.shared.infrastructure.logging import get_logger
from storedesk.sla.application import IEscalationRepository
from storedesk.sla.domain import Escalation
from storedesk.sla.infrastructure.models import EscalationModel

logger = get_logger(__name__)


def escalation_to_entity(model: EscalationModel) -> Escalation:
    return Escalation(
        id=str(model.id),
        ticket_id=str(model.ticket_id),
        trigger_event=model.trigger_event,
        status=EscalationStatus(model.status),
        created_at=as_utc(model.created_at),
        escalated_to_user_id=str(model.escalated_to_user_id) if model.escalated_to_user_id else None,
        acknowledged_at=as_utc(model.acknowledged_at),
        resolved_at=as_utc(model.resolved_at),
    )


class SQLAlchemyEscalationRepository(IEscalationRepository):
    """
    SQLAlchemy implementation of escalation repository.

    Inserts run in a savepoint; a violation of the open-trigger unique index
    means another sweeper got there first and is reported as a duplicate.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_open(self, ticket_id: str, trigger_event: str) -> Optional[Escalation]:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = (
            select(EscalationModel)
            .where(
                EscalationModel.ticket_id == ticket_uuid,
                EscalationModel.trigger_event == trigger_event,
                EscalationModel.status.in_([s.value for s in OPEN_ESCALATION_STATUSES]),
            )
            .limit(1)
            .execution_options(populate_existing=True)
        )
        try:
            model = (await self._session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to look up escalation for ticket {ticket_id}: {e}")

        return escalation_to_entity(model) if model else None

    async def create(self, escalation: Escalation) -> Optional[Escalation]:
        """Create new escalation; None when an open duplicate already exists."""
        ticket_uuid = to_uuid(escalation.ticket_id)
        if ticket_uuid is None:
            raise RepositoryException(f"Invalid ticket id: {escalation.ticket_id}")

        model = EscalationModel(
            id=to_uuid(escalation.id),
            ticket_id=ticket_uuid,
            trigger_event=escalation.trigger_event,
            escalated_to_user_id=to_uuid(escalation.escalated_to_user_id),
            status=escalation.status.value,
            created_at=escalation.created_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError:
            logger.info(
                "Open escalation already exists",
                extra={"ticket_id": escalation.ticket_id, "trigger_event": escalation.trigger_event}
            )
            return None
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create escalation: {e}")

        return escalation

    async def get_by_id(self, escalation_id: str) -> Optional[Escalation]:
        escalation_uuid = to_uuid(escalation_id)
        if escalation_uuid is None:
            return None

        stmt = (
            select(EscalationModel)
            .where(EscalationModel.id == escalation_uuid)
            .execution_options(populate_existing=True)
        )
        try:
            model = (await self._session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load escalation {escalation_id}: {e}")

        return escalation_to_entity(model) if model else None

    async def update(self, escalation: Escalation) -> Escalation:
        try:
            model = await self._session.get(EscalationModel, to_uuid(escalation.id))
            if model is None:
                raise RepositoryException(f"Escalation {escalation.id} not found")

            model.status = escalation.status.value
            model.acknowledged_at = escalation.acknowledged_at
            model.resolved_at = escalation.resolved_at

            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to update escalation {escalation.id}: {e}")
        return escalation

    async def list_for_ticket(self, ticket_id: str) -> List[Escalation]:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return []

        stmt = (
            select(EscalationModel)
            .where(EscalationModel.ticket_id == ticket_uuid)
            .order_by(EscalationModel.created_at, EscalationModel.id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load escalations for ticket {ticket_id}: {e}")

        return [escalation_to_entity(model) for model in result.scalars().all()]

    async def list_open(self, limit: int = 100) -> List[Escalation]:
        stmt = (
            select(EscalationModel)
            .where(EscalationModel.status.in_([s.value for s in OPEN_ESCALATION_STATUSES]))
            .order_by(EscalationModel.created_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load open escalations: {e}")

        return [escalation_to_entity(model) for model in result.scalars().all()]
