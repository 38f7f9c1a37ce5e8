"""
SLA Escalation Module
=====================

Bounded Context for service level agreements and escalation.

Responsibilities:
- Map priority to assignment, acceptance and resolution timeouts
- Fix each ticket's SLA deadline at creation
- Sweep active tickets on a schedule and raise escalations idempotently
- Notify Slack and expose the escalation lifecycle to moderators
"""
