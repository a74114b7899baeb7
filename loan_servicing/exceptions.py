"""Custom exception hierarchy for loan-servicing."""


class LoanServicingError(Exception):
    """Base exception for all loan-servicing errors."""


class EntityNotFoundError(LoanServicingError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a foreign key reference is violated."""


class InvalidEntityStateError(LoanServicingError):
    """Raised when an entity is in an invalid state for the operation."""


class AlreadyReversedError(InvalidEntityStateError):
    """Raised when reversing a payment that has already been reversed."""


class ValidationError(LoanServicingError):
    """Raised when caller-supplied input is missing or malformed."""


class AuthenticationError(LoanServicingError):
    """Raised when agent credentials do not match."""


class ConfigurationError(LoanServicingError):
    """Raised when configuration is invalid or missing."""


class StoreError(LoanServicingError):
    """Raised when the underlying document store fails."""


class SinkError(LoanServicingError):
    """Raised when an event sink operation fails."""
