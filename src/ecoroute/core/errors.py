"""Exception hierarchy for the real-time core."""


class EcoRouteError(RuntimeError):
    """Base exception for EcoRoute failures."""


class AdmissionError(EcoRouteError):
    """Raised when a real-time connection cannot be admitted.

    Covers missing, malformed or expired credentials as well as unknown or
    inactive users.
    """


class MessageValidationError(EcoRouteError, ValueError):
    """Raised when a chat message fails validation before persistence."""


class UnknownJobTypeError(EcoRouteError):
    """Raised by a worker when no handler exists for a job type."""


class EmailDeliveryError(EcoRouteError):
    """Raised when an email cannot be handed to the SMTP server."""
