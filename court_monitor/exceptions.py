from typing import Optional


class CourtMonitorError(Exception):
    """Base class for errors raised by the court monitor."""


class ConfigurationError(CourtMonitorError):
    """Raised when mandatory settings are missing or malformed."""


class FetchError(CourtMonitorError):
    """Availability for a single date could not be retrieved."""

    def __init__(self, date: str, reason: str, status_code: Optional[int] = None):
        self.date = date
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{date}: {reason}")


class BookingValidationError(CourtMonitorError):
    """A booking payload failed validation before submission."""
