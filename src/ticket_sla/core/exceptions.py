"""
Core Exceptions
================

Error hierarchy for the SLA engine. Services raise these; the HTTP layer
maps each family to a status code in shared.api.middleware.
"""

from typing import Any, Optional


class ApplicationException(Exception):
    """Root of the SLA engine errors; carries a message and a details dict."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """A clock or cycle invariant was broken."""


class RepositoryException(ApplicationException):
    """Persistence failure."""


class ValidationException(ApplicationException):
    """Input rejected before it reached the domain."""


class ResourceNotFoundException(ApplicationException):
    """Unknown ticket, clock or pause window."""

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
    """SLA rule registry or calendar is unusable."""


class NoActiveRuleException(ConfigurationException):
    """No active SLA rule exists for a priority. Tracking is disabled for that ticket only."""

    def __init__(self, priority_key: str, details: Optional[dict] = None):
        self.priority_key = priority_key
        super().__init__(
            f"No active SLA rule for priority '{priority_key}'",
            details or {"priority_key": priority_key}
        )


class InvalidWindowException(ValidationException):
    """Pause window rejected because start is not before end."""

    def __init__(self, start: Any, end: Any, details: Optional[dict] = None):
        self.start = start
        self.end = end
        super().__init__(
            f"Pause window start ({start}) must be before end ({end})",
            details or {"start": str(start), "end": str(end)}
        )


class ConcurrentUpdateException(RepositoryException):
    """Raised when a clock row was modified by another writer since it was read."""

    def __init__(
        self,
        ticket_id: str,
        clock_type: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.ticket_id = ticket_id
        self.clock_type = clock_type
        target = f"{ticket_id}/{clock_type}" if clock_type else ticket_id
        super().__init__(
            f"Concurrent update detected for {target}",
            details or {"ticket_id": ticket_id, "clock_type": clock_type}
        )


class ExternalServiceException(ApplicationException):
    """Event delivery to a downstream service failed."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)
