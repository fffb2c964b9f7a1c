"""
Shared error handling for the Fantasy Contest Platform.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class PlatformException(Exception):
    """Base exception for platform services."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class CacheError(PlatformException):
    """Cache infrastructure errors. Never surfaced past the cache manager."""

    def __init__(self, code: str = "CACHE_ERROR", message: str = "Cache error", details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class CacheConnectionError(CacheError):
    """Connection to the distributed cache could not be established."""

    def __init__(self, message: str = "Cache connection failed", cause: Optional[BaseException] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_CONNECTION_ERROR", message, details)
        self.cause = cause


class CacheSerializationError(CacheError):
    """Value could not be encoded for the distributed cache."""

    def __init__(self, message: str = "Cache value is not serializable", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_SERIALIZATION_ERROR", message, details)
