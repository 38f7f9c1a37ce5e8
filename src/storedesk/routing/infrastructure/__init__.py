"""
Routing Infrastructure Layer
=============================

Contains:
- ORM models: stores, users, service providers, tickets, assignments
- SQLAlchemy repositories and the savepoint transaction manager
"""

from storedesk.routing.infrastructure.models import (
    ServiceProviderModel,
    StoreModel,
    TicketAssignmentModel,
    TicketModel,
    UserModel,
)
from storedesk.routing.infrastructure.repositories import (
    SQLAlchemyAssignmentRepository,
    SQLAlchemyProviderRepository,
    SQLAlchemyStoreRepository,
    SQLAlchemyTicketRepository,
    SQLAlchemyTransactionManager,
)

__all__ = [
    "ServiceProviderModel",
    "StoreModel",
    "TicketAssignmentModel",
    "TicketModel",
    "UserModel",
    "SQLAlchemyAssignmentRepository",
    "SQLAlchemyProviderRepository",
    "SQLAlchemyStoreRepository",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyTransactionManager",
]
