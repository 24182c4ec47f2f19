"""Database models module."""
from .base import Base
from .account import Account, AccountRole, AccountStatus, normalize_email

__all__ = [
    "Base",
    "Account",
    "AccountRole",
    "AccountStatus",
    "normalize_email",
]
