"""
Error taxonomy for the area insights pipeline.

Only ValidationError and InternalError are meant to reach API callers;
lookup and storage failures degrade to empty or default values where they
occur.
"""

from typing import Optional


class AreaInsightsError(Exception):
    """Base class for all service errors."""

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AreaInsightsError):
    """Malformed or out-of-range input."""

    code = "VALIDATION_ERROR"
    status_code = 400


class PlacesLookupError(AreaInsightsError):
    """The external places provider returned a non-success status."""

    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 503

    def __init__(self, status: str, message: Optional[str] = None):
        self.status = status
        self.provider_message = message or "Unknown error"
        super().__init__(f"Places provider error: {status} - {self.provider_message}")


class StorageError(AreaInsightsError):
    """Cache or preference store unreachable."""

    code = "STORAGE_ERROR"
    status_code = 503


class InternalError(AreaInsightsError):
    """Unexpected failure while building a response."""

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
