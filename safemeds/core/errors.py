from typing import Optional

GENERIC_ERROR_MESSAGE = "An unexpected error occurred."
UNREADABLE_LABEL_MESSAGE = "Could not read the medication label. Please try scanning again."


class ScanError(Exception):
    """A failure that ends a scan with a message the user can read."""

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE):
        super().__init__(message)
        self.message = message or GENERIC_ERROR_MESSAGE


class ServiceError(ScanError):
    """Transport failure, bad status or malformed response from an external service."""

    def __init__(self, message: str, *, service: Optional[str] = None):
        super().__init__(message)
        self.service = service


class UnreadableLabelError(ScanError):
    def __init__(self, message: str = UNREADABLE_LABEL_MESSAGE):
        super().__init__(message)


class InvalidTransition(Exception):
    def __init__(self, state, event):
        super().__init__(f"No transition from {state.value} on {event.value}")
        self.state = state
        self.event = event


class InvalidImageError(ValueError):
    pass
