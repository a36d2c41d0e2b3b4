"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. Every exception carries a
``category`` and an HTTP-like ``status_code`` so the caller can map it without
inspecting the message.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    category = "application"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to a caller-facing error payload."""
        return {
            "category": self.category,
            "message": self.message,
            "details": self.details,
        }


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""

    category = "domain"
    status_code = 400


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""

    category = "repository"
    status_code = 500

    def to_dict(self) -> dict:
        # Storage internals stay in the logs
        return {
            "category": self.category,
            "message": "A storage error occurred",
            "details": {},
        }


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    category = "validation"
    status_code = 422


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    category = "not_found"
    status_code = 404

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

    category = "configuration"


class InvalidStateException(DomainException):
    """Raised for a status value outside the incident lifecycle."""

    category = "invalid_state"
    status_code = 400

    def __init__(self, status: Optional[str], details: Optional[dict] = None):
        self.status = status
        super().__init__(
            f"Unsupported incident status: {status}",
            details or {"status": status}
        )


class IllegalTransitionException(DomainException):
    """Raised when a transition or one of its gates is not satisfied."""

    category = "illegal_transition"
    status_code = 409

    def __init__(
        self,
        message: str,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.from_status = from_status
        self.to_status = to_status
        payload = dict(details or {})
        if from_status:
            payload.setdefault("from_status", from_status)
        if to_status:
            payload.setdefault("to_status", to_status)
        super().__init__(message, payload)


class ConflictException(ApplicationException):
    """Raised when a record was modified concurrently."""

    category = "conflict"
    status_code = 409

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
            message += f" '{resource_id}'"
        message += " was modified concurrently, reload and retry"
        super().__init__(message, details)
