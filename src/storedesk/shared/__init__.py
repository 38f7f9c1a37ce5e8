"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (routing, SLA
escalation and triage).

DO NOT add business logic from routing, SLA or triage to the shared kernel.
"""

__version__ = "1.0.0"
