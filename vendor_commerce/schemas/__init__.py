"""Pydantic schemas module."""
from .auth import (
    AccessTokenData,
    CurrentUserData,
    LoginData,
    LoginRequest,
    PasswordResetRequest,
    RegisterData,
    RegisteredUser,
    RegisterRequest,
    ResetPasswordRequest,
    SessionUser,
    VerifyEmailRequest,
)
from .common import (
    ApiResponse,
    ErrorDetail,
    HealthResponse,
    error_envelope,
)

__all__ = [
    # Auth
    "AccessTokenData",
    "CurrentUserData",
    "LoginData",
    "LoginRequest",
    "PasswordResetRequest",
    "RegisterData",
    "RegisteredUser",
    "RegisterRequest",
    "ResetPasswordRequest",
    "SessionUser",
    "VerifyEmailRequest",
    # Common
    "ApiResponse",
    "ErrorDetail",
    "HealthResponse",
    "error_envelope",
]
