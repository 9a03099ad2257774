"""
Domain-specific exception hierarchy for the salon booking application.
"""


class SalonBookError(Exception):
    """Base class for all application-level errors."""


class ValidationError(SalonBookError, ValueError):
    """Raised when user input or a selection is missing or malformed."""


class NegotiationError(ValidationError):
    """Raised when a reschedule negotiation step is not allowed in the current state."""


class SlotUnavailableError(ValidationError):
    """Raised when the chosen (staff, date, time) slot is already taken."""


class RecordNotFoundError(SalonBookError):
    """Raised when a record does not exist in the record store."""


class RecordConflictError(SalonBookError):
    """Raised when a conditional create finds a matching record already present."""


class StoreError(SalonBookError):
    """Raised when the record store cannot be reached or rejects an operation."""


class AuthenticationError(SalonBookError):
    """Raised when credentials are wrong or the account may not use the requested panel."""


class ConsultationError(SalonBookError):
    """Raised when the hairstyle consultation service fails."""
