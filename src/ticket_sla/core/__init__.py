"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from ticket_sla.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    NoActiveRuleException,
    InvalidWindowException,
    ConcurrentUpdateException,
    ExternalServiceException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "NoActiveRuleException",
    "InvalidWindowException",
    "ConcurrentUpdateException",
    "ExternalServiceException",
]
