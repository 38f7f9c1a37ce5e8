"""
Routing Application Layer
==========================

Contains:
- Repository interfaces
- AvailabilityFinder, ProviderScorer, RoutingOrchestrator
- DTOs for the HTTP layer
"""

from storedesk.routing.application.interfaces import (
    IAssignmentRepository,
    IProviderRepository,
    IStoreRepository,
    ITicketHistoryRepository,
    ITicketRepository,
    ITransactionManager,
)
from storedesk.routing.application.availability import AvailabilityFinder, order_candidates
from storedesk.routing.application.scoring import ProviderScorer
from storedesk.routing.application.orchestrator import RoutingOrchestrator

__all__ = [
    # Interfaces
    "IAssignmentRepository",
    "IProviderRepository",
    "IStoreRepository",
    "ITicketHistoryRepository",
    "ITicketRepository",
    "ITransactionManager",
    # Services
    "AvailabilityFinder",
    "order_candidates",
    "ProviderScorer",
    "RoutingOrchestrator",
]
