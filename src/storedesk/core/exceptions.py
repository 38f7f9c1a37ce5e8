"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for LLM API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class ClassificationFailure(LLMException):
    """Raised when an issue description cannot be classified."""


class InvalidLocation(DomainException):
    """Raised when routing receives coordinates that are not finite numbers."""

    def __init__(self, latitude: Any, longitude: Any, details: Optional[dict] = None):
        self.latitude = latitude
        self.longitude = longitude
        super().__init__(
            f"Invalid store location ({latitude}, {longitude})",
            details or {"latitude": str(latitude), "longitude": str(longitude)}
        )


class AssignmentConflict(DomainException):
    """Raised when a provider reached capacity between selection and commit."""

    def __init__(self, provider_id: str, details: Optional[dict] = None):
        self.provider_id = provider_id
        super().__init__(
            f"Provider {provider_id} has no remaining capacity",
            details or {"provider_id": provider_id}
        )


class InvalidTicketState(DomainException):
    """Raised when an operation is not allowed for the ticket's current status."""

    def __init__(self, ticket_id: str, status: Any, operation: str):
        self.ticket_id = ticket_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} ticket {ticket_id} in status {status}",
            {"ticket_id": ticket_id, "status": str(status), "operation": operation}
        )


class InvalidEscalationState(DomainException):
    """Raised when an escalation status transition is not allowed."""

    def __init__(self, escalation_id: str, status: Any, target: Any):
        self.escalation_id = escalation_id
        self.status = status
        self.target = target
        super().__init__(
            f"Escalation {escalation_id} cannot move from {status} to {target}",
            {"escalation_id": escalation_id, "status": str(status), "target": str(target)}
        )
