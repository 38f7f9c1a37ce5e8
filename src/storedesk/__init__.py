"""
StoreDesk
=========

Ticket routing and SLA escalation engine for store maintenance issues.
"""

__version__ = "1.0.0"
