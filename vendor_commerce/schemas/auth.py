"""Authentication schemas."""
import re
import uuid
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import Field, field_validator

from ..core.passwords import BCRYPT_MAX_BYTES
from .common import BaseSchema

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")


def _check_password_length(value: str) -> str:
    # bcrypt reads at most this many bytes of a secret.
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password cannot exceed {BCRYPT_MAX_BYTES} bytes")
    return value


def _normalize_email(value: str) -> str:
    value = value.strip()
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValueError("Invalid email address")
    return value.lower()


class EmailRequest(BaseSchema):
    """Request carrying an account email."""

    email: str = Field(..., description="Account email address")

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _normalize_email(value)


class RegisterRequest(EmailRequest):
    """Registration request schema."""

    password: str = Field(..., min_length=8, max_length=128, description="Account password")
    first_name: Optional[str] = Field(None, min_length=1, max_length=50, description="First name")
    last_name: Optional[str] = Field(None, min_length=1, max_length=50, description="Last name")
    phone: Optional[str] = Field(None, min_length=10, max_length=32, description="Phone number")

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password_length(value)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else None

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not PHONE_PATTERN.match(value):
            raise ValueError("Please enter a valid phone number")
        return value


class LoginRequest(EmailRequest):
    """Login request schema."""

    password: str = Field(..., min_length=1, max_length=128, description="Account password")


class VerifyEmailRequest(EmailRequest):
    """Email verification request schema."""

    verification_token: str = Field(..., min_length=1, max_length=16, description="Emailed code")


class PasswordResetRequest(EmailRequest):
    """Password reset request schema."""


class ResetPasswordRequest(EmailRequest):
    """Password reset confirmation schema."""

    reset_token: str = Field(..., min_length=1, max_length=16, description="Emailed reset code")
    new_password: str = Field(..., min_length=8, max_length=128, description="New password")

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, value: str) -> str:
        return _check_password_length(value)


class RegisteredUser(BaseSchema):
    """Public profile returned on registration."""

    id: uuid.UUID = Field(..., description="Account ID")
    email: str = Field(..., description="Account email")
    first_name: Optional[str] = Field(None, description="First name")
    last_name: Optional[str] = Field(None, description="Last name")
    phone: Optional[str] = Field(None, description="Phone number")


class SessionUser(RegisteredUser):
    """Profile returned with a session."""

    roles: List[str] = Field(default_factory=list, description="Account roles")
    status: Optional[str] = Field(None, description="Account status")
    vendor_id: Optional[str] = Field(None, description="Vendor reference")
    is_email_verified: bool = Field(False, description="Email verification status")


class RegisterData(BaseSchema):
    user: RegisteredUser


class LoginData(BaseSchema):
    user: SessionUser
    access_token: str = Field(..., description="JWT access token")


class AccessTokenData(BaseSchema):
    access_token: str = Field(..., description="JWT access token")


class CurrentUserData(BaseSchema):
    user: SessionUser
