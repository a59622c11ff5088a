"""Custom application exceptions.

Every exception carries an HTTP status for the synchronous boundary and a
``retryable`` flag the message-delivery layer uses to choose between
redelivery and dead-lettering.
"""


class AppException(Exception):
    """Base application exception."""

    retryable = False

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationException(AppException):
    """Malformed or out-of-range input. Never retried."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)


class UnsupportedJurisdictionException(ValidationException):
    """Country code outside the supported jurisdiction set."""

    def __init__(self, message: str = "Unsupported jurisdiction"):
        """Initialize with the validation status code."""
        super().__init__(message)


class MisroutedMessageException(ValidationException):
    """Message delivered to a lane that does not match its routing attribute."""

    def __init__(self, message: str = "Message delivered to the wrong lane"):
        """Initialize with the validation status code."""
        super().__init__(message)


class NotFoundException(AppException):
    """Referenced appointment or schedule absent. Permanent."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class TransientInfrastructureException(AppException):
    """Store or broker temporarily unavailable. Safe to retry."""

    retryable = True

    def __init__(self, message: str = "Service temporarily unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class InvalidStatusTransitionException(AppException):
    """Attempt to move an appointment out of a terminal status."""

    def __init__(self, message: str = "Invalid status transition"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)
