"""
Routing Infrastructure Models
==============================

SQLAlchemy ORM models for the routing module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from storedesk.config import AssignmentStatus, ProviderStatus, TicketStatus, UserRole
from storedesk.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceProviderModel(Base):
    """
    Database model for ServiceProvider entity.

    Maps to the 'service_providers' table.
    """
    __tablename__ = "service_providers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    skills: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # Stored coordinates may be missing for providers still onboarding
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    capacity_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    current_load: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ProviderStatus.PENDING.value, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "current_load >= 0 AND current_load <= capacity_per_day",
            name="ck_service_providers_load_within_capacity",
        ),
    )


class UserModel(Base):
    """
    Database model for user accounts.

    Only the columns routing needs: role, active flag and the provider
    company a technician account belongs to.
    """
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.STORE_REGISTER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    service_provider_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("service_providers.id"), nullable=True, index=True
    )


class StoreModel(Base):
    """
    Database model for stores.

    Maps to the 'stores' table.
    """
    __tablename__ = "stores"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Escalations for this store's tickets go to this moderator
    moderator_user_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table.
    """
    __tablename__ = "tickets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Report
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location_in_store: Mapped[str] = mapped_column(String(100), nullable=False)
    qr_asset_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    store_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("stores.id"), nullable=False, index=True)
    reporter_user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)

    # Classification
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="General")
    subcategory: Mapped[str] = mapped_column(String(50), nullable=False, default="Maintenance")
    classification_confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    priority: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TicketStatus.OPEN.value, index=True)

    # Assignment
    assigned_service_provider_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("service_providers.id"), nullable=True, index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class TicketAssignmentModel(Base):
    """
    Database model for TicketAssignment entity.

    Maps to the 'ticket_assignments' table.
    """
    __tablename__ = "ticket_assignments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    service_provider_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("service_providers.id"), nullable=False)
    assignment_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AssignmentStatus.PROPOSED.value)
    routing_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("ticket_id", "assignment_sequence", name="uq_ticket_assignments_sequence"),
    )
