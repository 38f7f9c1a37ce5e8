"""
Routing Interfaces Layer
=========================

HTTP routes for ticket routing.
"""

from storedesk.routing.interfaces.controllers import routing_router

__all__ = ["routing_router"]
