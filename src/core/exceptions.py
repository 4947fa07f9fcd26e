"""
Custom exception hierarchy for the grading assistant.

Provides a consistent error handling approach across all modules.
"""


class SuperTeacherError(Exception):
    """
    Base exception for all grading assistant errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ==================== Configuration Errors ====================

class ConfigurationError(SuperTeacherError):
    """
    Error in system configuration.

    Raised at startup when required configuration is missing or invalid.
    """
    pass


class MissingAPIKeyError(ConfigurationError):
    """Raised when a required API key is not configured."""
    pass


# ==================== Provider Errors ====================

class ProviderError(SuperTeacherError):
    """
    Base error for OCR and grading collaborators.

    Everything the retry policy treats as a failed attempt derives from this.
    """
    pass


class APIConnectionError(ProviderError):
    """Raised when connection to a remote API fails."""
    pass


class APITimeoutError(ProviderError):
    """Raised when a remote API call times out."""
    pass


class APIResponseError(ProviderError):
    """Raised when a remote API returns an unexpected or invalid response."""
    pass


class ParsingError(ProviderError):
    """Raised when a remote payload is malformed or misses required fields."""
    pass


# ==================== Session Errors ====================

class SessionError(SuperTeacherError):
    """
    Base error for session-related issues.
    """
    pass


class SessionStateError(SessionError):
    """Raised when a session step or transition is not valid for its workflow."""

    def __init__(self, message: str, step: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.step = step


# ==================== Storage Errors ====================

class StorageError(SuperTeacherError):
    """
    Base error for storage issues.
    """
    pass


class ObjectStoreError(StorageError):
    """Raised when an uploaded object cannot be stored."""
    pass
