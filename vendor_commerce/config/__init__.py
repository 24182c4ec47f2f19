"""Configuration module."""
from .settings import (
    APISettings,
    AuthSettings,
    DatabaseSettings,
    EmailSettings,
    MonitoringSettings,
    SecuritySettings,
    Settings,
    get_settings,
)

__all__ = [
    "APISettings",
    "AuthSettings",
    "DatabaseSettings",
    "EmailSettings",
    "MonitoringSettings",
    "SecuritySettings",
    "Settings",
    "get_settings",
]
