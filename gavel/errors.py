"""
gavel.errors — Error Taxonomy
==============================

Every service raises one of these; the API renders them as
``{"error": {"code": ..., "message": ...}}`` with the matching HTTP status.
Raising inside :func:`gavel.database.engine.run_transaction` aborts the
whole transaction, so no partial point grant or counter bump survives.
"""

from __future__ import annotations


class GavelError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL"
    http_status = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class Unauthenticated(GavelError):
    code = "UNAUTHENTICATED"
    http_status = 401
    default_message = "Login required."


class InvalidArgument(GavelError):
    code = "INVALID_ARGUMENT"
    http_status = 400
    default_message = "Invalid argument."


class PermissionDenied(GavelError):
    code = "PERMISSION_DENIED"
    http_status = 403
    default_message = "Not allowed."


class NotFound(GavelError):
    code = "NOT_FOUND"
    http_status = 404
    default_message = "Not found."


class FailedPrecondition(GavelError):
    code = "FAILED_PRECONDITION"
    http_status = 400
    default_message = "Precondition not met."


class AlreadyExists(GavelError):
    code = "ALREADY_EXISTS"
    http_status = 409
    default_message = "Already exists."


class Internal(GavelError):
    """Store failure or a transaction that kept conflicting past its retry bound."""
