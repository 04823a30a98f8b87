"""
Domain error taxonomy.

Services raise these; routers translate them into HTTP responses
with to_http_error(). Every mutating operation either commits fully
or raises exactly one of these with nothing persisted.
"""

from fastapi import HTTPException


class DomainError(Exception):
    """Base class for errors raised by the finance services."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Caller-correctable input problem. The operation had no effect."""

    status_code = 400


class InvalidStateTransition(DomainError):
    """Attempted an illegal lifecycle move."""

    status_code = 409


class NotFoundError(DomainError):
    """A referenced record does not exist."""

    status_code = 404


class ConflictError(DomainError):
    """A concurrent write invalidated the validation done before commit."""

    status_code = 409


class PermissionDenied(DomainError):
    """The acting principal lacks the permission for this operation."""

    status_code = 403


class CollaboratorUnavailable(DomainError):
    """The database or another external collaborator failed or timed out."""

    status_code = 503


def to_http_error(error: DomainError) -> HTTPException:
    """Map a domain error onto the HTTP status the API reports."""
    return HTTPException(status_code=error.status_code, detail=error.message)
