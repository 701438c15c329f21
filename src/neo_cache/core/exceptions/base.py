"""Base exceptions for neo-cache.

All exceptions raised by the library inherit from NeoCacheError and carry
an error code and a details mapping for structured logging.
"""

from typing import Any, Dict, Optional


class NeoCacheError(Exception):
    """Base exception for all neo-cache errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        *args,
        **kwargs
    ):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class ConfigurationError(NeoCacheError):
    """Raised when required connection settings are missing or invalid."""
    pass


def create_error_response(exception: NeoCacheError) -> Dict[str, Any]:
    """Create standardized error payload from exception.

    Args:
        exception: The neo-cache exception

    Returns:
        Error dictionary suitable for logging or API responses
    """
    return {
        "error": {
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
            "type": exception.__class__.__name__,
        }
    }
