"""
Routing Module
==============

Bounded Context for getting a reported issue to the right technician.

Responsibilities:
- Find approved providers with capacity and the required skills
- Score candidates on skill, availability, proximity and performance
- Assign atomically and re-route after technician rejection
"""
