"""Custom exceptions for the application."""
from typing import Any, Dict, List, Optional


class BaseAPIException(Exception):
    """Base exception for API errors."""

    status_code: int = 500
    default_message: str = "Internal server error"
    default_error_code: str = "INTERNAL_ERROR"
    # Operational errors are expected outcomes whose message is safe to show.
    is_operational: bool = True

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def serialize_errors(self) -> List[Dict[str, Any]]:
        """Errors list for the response envelope."""
        return [{"message": self.message, "code": self.error_code}]


class ValidationError(BaseAPIException):
    """Request validation error listing every offending field."""

    status_code = 400
    default_message = "Validation failed"
    default_error_code = "VALIDATION_ERROR"

    def __init__(self, errors: List[Dict[str, Any]], error_code: Optional[str] = None):
        super().__init__(error_code=error_code)
        self.errors = errors

    def serialize_errors(self) -> List[Dict[str, Any]]:
        return self.errors


class BadRequestError(BaseAPIException):
    """Malformed request or invalid one-time code."""

    status_code = 400
    default_message = "Bad request"
    default_error_code = "BAD_REQUEST"


class UnauthorizedError(BaseAPIException):
    """Authentication error."""

    status_code = 401
    default_message = "Unauthorized"
    default_error_code = "UNAUTHORIZED"


class TokenExpiredError(UnauthorizedError):
    """Signed token is past its expiry."""

    default_message = "Token expired"
    default_error_code = "TOKEN_EXPIRED"


class MalformedTokenError(UnauthorizedError):
    """Signed token failed decoding, signature or claim checks."""

    default_message = "Invalid token"
    default_error_code = "INVALID_TOKEN"


class ForbiddenError(BaseAPIException):
    """Authenticated caller lacks the required role."""

    status_code = 403
    default_message = "Forbidden"
    default_error_code = "FORBIDDEN"


class NotFoundError(BaseAPIException):
    """Resource not found error."""

    status_code = 404
    default_message = "Resource not found"
    default_error_code = "NOT_FOUND"


class ConflictError(BaseAPIException):
    """Resource conflict error."""

    status_code = 409
    default_message = "Resource conflict"
    default_error_code = "CONFLICT"


class TooManyRequestsError(BaseAPIException):
    """Rate limit exceeded error."""

    status_code = 429
    default_message = "Too many requests"
    default_error_code = "TOO_MANY_REQUESTS"


class InternalServerError(BaseAPIException):
    """Unexpected failure; the message is never shown in production."""

    status_code = 500
    default_message = "Internal server error"
    default_error_code = "INTERNAL_ERROR"
    is_operational = False


class ExternalServiceError(BaseAPIException):
    """External collaborator (email transport) failed."""

    status_code = 502
    default_message = "External service error"
    default_error_code = "EXTERNAL_SERVICE_ERROR"
