"""
Routing Repository Interfaces
==============================

Abstractions the routing services depend on.

Following SOLID principles:
- Dependency Inversion: services depend on these interfaces, SQLAlchemy
  repositories and in-memory test fakes implement them
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import List, Optional

from storedesk.config import AssignmentStatus, TicketStatus
from storedesk.routing.domain import Coordinates, ServiceProvider, Ticket, TicketAssignment


class IProviderRepository(ABC):
    """Interface for service provider data access."""

    @abstractmethod
    async def find_approved_with_capacity(self) -> List[ServiceProvider]:
        """
        Approved providers with remaining capacity.

        active_user_count is populated on every returned provider.
        """

    @abstractmethod
    async def increment_load(self, provider_id: str, delta: int = 1) -> None:
        """
        Add to current_load, re-checking capacity at write time.

        Raises:
            AssignmentConflict: If the increment would exceed capacity_per_day
        """

    @abstractmethod
    async def decrement_load(self, provider_id: str, delta: int = 1) -> None:
        """Subtract from current_load, never going below zero."""


class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        """Create new ticket."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""

    @abstractmethod
    async def update(self, ticket: Ticket) -> Ticket:
        """Persist status, assignment and lifecycle timestamps."""

    @abstractmethod
    async def update_status(self, ticket_id: str, status: TicketStatus) -> None:
        """Set only the status of a ticket."""

    @abstractmethod
    async def find_active(self) -> List[Ticket]:
        """Tickets in OPEN, ASSIGNED or IN_PROGRESS, with store_moderator_id joined."""


class ITicketHistoryRepository(ABC):
    """Completed-ticket history used for provider performance."""

    @abstractmethod
    async def completion_stats(self, provider_id: str, since: datetime) -> tuple[int, int]:
        """
        Count the provider's tickets completed since a point in time.

        Returns:
            (completed, completed_within_sla)
        """


class IAssignmentRepository(ABC):
    """Interface for ticket assignment data access."""

    @abstractmethod
    async def create(self, assignment: TicketAssignment) -> TicketAssignment:
        """Create new assignment."""

    @abstractmethod
    async def find_latest_for_ticket(self, ticket_id: str) -> Optional[TicketAssignment]:
        """Assignment with the highest sequence for a ticket."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[TicketAssignment]:
        """All assignments for a ticket ordered by sequence."""

    @abstractmethod
    async def update_status(
        self,
        assignment_id: str,
        status: AssignmentStatus,
        rejection_reason: Optional[str] = None
    ) -> None:
        """Change the status of one assignment."""


class IStoreRepository(ABC):
    """Store lookups needed by routing."""

    @abstractmethod
    async def get_location(self, store_id: str) -> Optional[Coordinates]:
        """Store coordinates, or None when the store does not exist."""


class ITransactionManager(ABC):
    """Unit of work boundary for multi-row writes."""

    @abstractmethod
    def atomic(self) -> AbstractAsyncContextManager:
        """
        Context manager whose writes commit together or not at all.

        Exceptions raised inside the block roll back every write made in it
        and are re-raised.
        """

    @abstractmethod
    async def commit(self) -> None:
        """Commit the outer transaction so every write so far is durable."""
