"""Database module."""
from .accounts import AccountRepository
from .engine import Database, create_engine
from .session import get_db

__all__ = [
    "AccountRepository",
    "Database",
    "create_engine",
    "get_db",
]
