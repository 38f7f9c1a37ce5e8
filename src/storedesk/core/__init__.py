"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from storedesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
    ClassificationFailure,
    InvalidLocation,
    AssignmentConflict,
    InvalidTicketState,
    InvalidEscalationState,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "ClassificationFailure",
    "InvalidLocation",
    "AssignmentConflict",
    "InvalidTicketState",
    "InvalidEscalationState",
]
