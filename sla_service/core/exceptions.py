"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Expected business outcomes (duplicates, unresolved references, bad dates on a
single command) are returned as values by the application services; these
exceptions cover invariant violations and infrastructure failures.
"""

from datetime import date
from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class InvalidDateRangeException(DomainException):
    """Raised when a closed date precedes the submitted date."""

    def __init__(self, submitted: date, closed: date, details: Optional[dict] = None):
        self.submitted = submitted
        self.closed = closed
        super().__init__(
            f"closed date {closed.isoformat()} is before submitted date {submitted.isoformat()}",
            details or {"submitted": submitted.isoformat(), "closed": closed.isoformat()}
        )


class RepositoryException(ApplicationException):
    """Recoverable data access error scoped to one operation (e.g. constraint violation)."""


class StorageUnavailableException(RepositoryException):
    """Storage cannot be reached at all. Never handled per row; always propagates."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


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


class NotificationException(ExternalServiceException):
    """A notification the caller explicitly asked for could not be delivered."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notification", message, details)
