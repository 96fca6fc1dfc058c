"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from sla_service.core.exceptions import (
    ApplicationException,
    DomainException,
    InvalidDateRangeException,
    RepositoryException,
    StorageUnavailableException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    NotificationException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "InvalidDateRangeException",
    "RepositoryException",
    "StorageUnavailableException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "NotificationException",
]
