# app/domain/exceptions.py


class DomainError(Exception):
    """Base class for errors that reject a lifecycle operation without mutating state."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Bad input: empty rejection reason, quantity out of range, malformed line item."""

    status_code = 400


class InvariantViolation(ValidationError):
    """A bundle would break one of its structural rules if the change were applied."""


class AuthorizationError(DomainError):
    status_code = 403


class NotFoundError(DomainError):
    status_code = 404


class StateConflictError(DomainError):
    """The bundle's current status does not allow the requested transition."""

    status_code = 409
