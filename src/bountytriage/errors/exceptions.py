"""Custom exception classes for the bounty triage service."""


class BountyTriageError(Exception):
    """Base exception for the triage service."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(BountyTriageError):
    """Malformed payload or request."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class AuthenticationError(BountyTriageError):
    """Webhook signature missing or invalid."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__("AUTHENTICATION_ERROR", message, status_code=401)


class NotFoundError(BountyTriageError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class ConflictError(BountyTriageError):
    """Resource state changed underneath the caller."""

    def __init__(self, message: str):
        super().__init__("CONFLICT", message, status_code=409)


class InvalidTransitionError(BountyTriageError):
    """A lifecycle transition was attempted from a state that does not allow it."""

    def __init__(self, current_status: str, event: str):
        self.current_status = current_status
        self.event = event
        super().__init__(
            "INVALID_TRANSITION",
            f"Cannot apply '{event}' to a bounty in status {current_status}",
            details={"status": current_status, "event": event},
            status_code=409,
        )


class QueueUnavailableError(BountyTriageError):
    """The queue store could not be reached. Callers should retry with backoff."""

    def __init__(self, message: str = "Queue store unavailable"):
        super().__init__("QUEUE_UNAVAILABLE", message, status_code=503)


class OracleError(BountyTriageError):
    """The assessment oracle failed or returned unusable content."""

    def __init__(self, message: str):
        super().__init__("ORACLE_ERROR", message, status_code=502)
