"""
Custom Exception Classes for the Blog Application

This module defines custom exceptions for better error handling and
categorization of failures across the application.
"""

from typing import List, Optional


class BlogError(Exception):
    """Base exception for all blog application errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(BlogError):
    """Raised when configuration validation fails or required settings are missing."""
    pass


# =============================================================================
# Client Input Errors
# =============================================================================

class ValidationError(BlogError):
    """Raised when client-supplied data fails a documented constraint.

    Attributes:
        errors: One message per failed constraint, in the order they were checked.
    """

    def __init__(self, errors, message: Optional[str] = None):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: List[str] = list(errors)
        super().__init__(message or "; ".join(self.errors))


class NotFoundError(BlogError):
    """Raised when a referenced entity does not exist."""
    pass


class DuplicateError(BlogError):
    """Raised on a unique-constraint violation (subscriber email, post slug)."""
    pass


# =============================================================================
# Access Errors
# =============================================================================

class PermissionError(BlogError):
    """Raised when the backend or the admin boundary rejects an operation."""
    pass


class AuthenticationError(BlogError):
    """Raised when admin credentials do not match."""
    pass


# =============================================================================
# Backend Errors
# =============================================================================

class BackendError(BlogError):
    """Base exception for store and network failures."""
    pass


class ConnectionError(BackendError):
    """Raised when the database connection fails."""
    pass


class QueryError(BackendError):
    """Raised when a database query fails."""
    pass


class StorageError(BackendError):
    """Raised when an object store upload fails."""
    pass


# =============================================================================
# Email Errors
# =============================================================================

class ProviderError(BlogError):
    """Raised when the email function or the email provider rejects a request."""
    pass
