"""Short-lived numeric one-time codes for email verification and password reset."""
import hmac
import secrets
from datetime import datetime, timedelta
from typing import NamedTuple, Optional

from .clock import Clock, utcnow

CODE_MIN = 1000
CODE_MAX = 9999


class VerificationCode(NamedTuple):
    code: str
    expires_at: datetime


class VerificationCodeGenerator:
    """Generates independent 4-digit codes with a fixed lifetime."""

    def __init__(self, ttl_minutes: int = 10, clock: Clock = utcnow):
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock

    def generate(self) -> VerificationCode:
        code = CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1)
        return VerificationCode(code=str(code), expires_at=self.clock() + self.ttl)


def code_matches(
    stored_code: Optional[str],
    stored_expires_at: Optional[datetime],
    candidate: Optional[str],
    now: datetime,
) -> bool:
    """True iff a stored code exists, equals the candidate exactly and has not expired."""
    if not stored_code or stored_expires_at is None or candidate is None:
        return False
    if stored_expires_at <= now:
        return False
    return hmac.compare_digest(stored_code.encode(), candidate.encode())
