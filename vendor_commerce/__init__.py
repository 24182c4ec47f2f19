"""Vendor commerce backend: accounts, authentication and sessions."""

__version__ = "0.1.0"
