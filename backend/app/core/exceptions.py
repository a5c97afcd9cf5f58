"""Custom exceptions for application-specific error handling."""

from __future__ import annotations

from typing import Any, Dict, Optional


class AuthServiceException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ValidationError(AuthServiceException):
    """Raised when input is missing or malformed."""

    def __init__(self, message: str = "invalid_input", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, status_code=400)


class ConflictError(AuthServiceException):
    """Raised when a request conflicts with current state."""

    def __init__(self, message: str = "conflict", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFLICT", details=details, status_code=409)


class UnauthorizedError(AuthServiceException):
    """Raised for bad credentials or an unusable token.

    Every credential mismatch uses the same message so callers cannot tell
    an unknown account from a wrong password.
    """

    def __init__(self, message: str = "invalid_credentials"):
        super().__init__(message, error_code="UNAUTHORIZED", status_code=401)


class ForbiddenError(AuthServiceException):
    """Raised when a feature is switched off."""

    def __init__(self, message: str = "forbidden"):
        super().__init__(message, error_code="FORBIDDEN", status_code=403)


class RateLimitExceeded(AuthServiceException):
    """Raised when a client exceeds rate limits."""

    def __init__(self, *, retry_after: int, limit: int, window_seconds: int, reset_at: float):
        headers = {
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(int(reset_at)),
        }
        super().__init__(
            "rate_limit_exceeded",
            error_code="RATE_LIMIT",
            details={
                "retry_after": retry_after,
                "limit": limit,
                "window_seconds": window_seconds,
                "reset_time": int(reset_at),
            },
            status_code=429,
            headers=headers,
        )


class InternalError(AuthServiceException):
    """Opaque server failure; the cause is only logged."""

    def __init__(self, message: str = "internal_server_error"):
        super().__init__(message, error_code="INTERNAL_ERROR", status_code=500)


class EmailDeliveryError(Exception):
    """Raised by an email sender when a message could not be handed off."""
