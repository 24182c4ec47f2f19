"""Account model."""
import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from .base import Base


class AccountRole(str, enum.Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"
    MANAGER = "manager"
    SALES = "sales"


class AccountStatus(str, enum.Enum):
    PENDING_VERIFICATION = "pending_verification"
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Account(Base):
    """Registered user or vendor identity record.

    Plain data only: hashing, tokens and lockout rules live in the services
    that operate on it.
    """

    __tablename__ = "accounts"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    first_name: Mapped[Optional[str]] = mapped_column(String(50))
    last_name: Mapped[Optional[str]] = mapped_column(String(50))
    phone: Mapped[Optional[str]] = mapped_column(String(32))

    roles: Mapped[List[str]] = mapped_column(
        JSON, default=lambda: [AccountRole.CUSTOMER.value], nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(32), default=AccountStatus.PENDING_VERIFICATION.value, nullable=False, index=True
    )
    vendor_id: Mapped[Optional[str]] = mapped_column(String(64))

    # Email verification; code and expiry are set and cleared together
    is_email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_verification_code: Mapped[Optional[str]] = mapped_column(String(8))
    email_verification_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_verification_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Password reset; code and expiry are set and cleared together
    password_reset_code: Mapped[Optional[str]] = mapped_column(String(8))
    password_reset_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Lockout
    failed_attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Audit
    password_changed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_login_ip: Mapped[Optional[str]] = mapped_column(String(64))
    registration_ip: Mapped[Optional[str]] = mapped_column(String(64))
    registration_user_agent: Mapped[Optional[str]] = mapped_column(String(255))
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self) -> str:
        return f"<Account(email={self.email}, status={self.status})>"
