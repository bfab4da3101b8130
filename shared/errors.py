"""
Shared error handling for the ACL decision service.

Infrastructure failures (store, role resolver) are raised as exceptions so
callers can tell them apart from an explicit DENY decision.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLayerException(Exception):
    """Base exception for ACL services."""

    status_code = 400

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


class StoreError(AccessLayerException):
    """Rule store or scope store failure, including timeouts."""

    status_code = 503

    def __init__(self, message: str = "Rule store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_ERROR", message, details)


class ResolverError(AccessLayerException):
    """Role membership check failure."""

    status_code = 503

    def __init__(self, message: str = "Role resolution failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("RESOLVER_ERROR", message, details)


class InvalidRequestError(AccessLayerException):
    """Missing or malformed identifiers on an authorization request."""

    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_REQUEST", message, details)


class NotFoundError(AccessLayerException):
    """A named entity, such as a scope, does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)
