"""Exceptions for the service layer.

Each exception maps onto one HTTP status in the API layer; repository and
infrastructure errors are translated into these before they leave a service.
"""

from typing import Dict, List, Optional


class ServiceError(Exception):
    """Base exception for all service-level errors."""

    default_message = "service error"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(ServiceError):
    """A request field failed validation."""

    default_message = "invalid input"

    def __init__(self, message: str = "", errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.errors = errors or {}

    @classmethod
    def for_field(cls, field: str, message: str) -> "InvalidInputError":
        return cls(message, errors={field: [message]})


class UnauthorizedError(ServiceError):
    """The request carries no usable identity."""
    default_message = "authentication required"


class ForbiddenError(ServiceError):
    """The caller is not allowed to act on the resource."""
    default_message = "you do not have access to this link"


class NotFoundError(ServiceError):
    default_message = "not found"


class LinkNotFoundError(NotFoundError):
    """No live link exists for the code or id."""
    default_message = "link not found"


class LinkInactiveError(LinkNotFoundError):
    """The link exists but is switched off; clients see it as not found."""
    default_message = "link not found"


class ConflictError(ServiceError):
    """The requested keyword is already taken on the domain."""
    default_message = "keyword is already taken"


class ResourceExhaustedError(ServiceError):
    """No free keyword was found within the retry budget."""
    default_message = "could not allocate a short code, try again later"


class UnavailableError(ServiceError):
    """A required backend (the link store) did not answer in time."""
    default_message = "service temporarily unavailable"


class CleanupError(ServiceError):
    """A maintenance run failed."""
    default_message = "cleanup failed"
