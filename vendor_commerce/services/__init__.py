"""Services module."""
from .account_policy import AccountSecurityPolicy, LockoutState
from .auth import AccountProfile, AuthOrchestrator, LoginResult, VerificationOutcome
from .email import EmailService

__all__ = [
    "AccountSecurityPolicy",
    "LockoutState",
    "AccountProfile",
    "AuthOrchestrator",
    "LoginResult",
    "VerificationOutcome",
    "EmailService",
]
