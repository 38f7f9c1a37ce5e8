"""
SLA Interfaces Layer
====================

Interface adapters (controllers) for the SLA module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from storedesk.sla.interfaces.controllers import (
    build_escalation_monitor,
    sla_router,
    ticket_escalations_router,
)

__all__ = ["build_escalation_monitor", "sla_router", "ticket_escalations_router"]
