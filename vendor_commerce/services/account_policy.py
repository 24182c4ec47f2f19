"""Login throttling, account lockout and verification-resend throttling."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..config import SecuritySettings
from ..core.clock import Clock, utcnow
from ..core.logging import SecurityLogger
from ..database.accounts import AccountRepository
from ..models.account import Account


@dataclass(frozen=True)
class LockoutState:
    failed_attempt_count: int
    locked_until: Optional[datetime] = None


class AccountSecurityPolicy:
    """Lockout and resend rules applied to an account record.

    Five failed logins lock the account for thirty minutes (both
    configurable); the lock lapses on its own and the counter restarts on the
    next failure after it. Verification codes may be re-sent at most once per
    hour.
    """

    def __init__(self, settings: SecuritySettings, clock: Clock = utcnow):
        self.max_failed_attempts = settings.max_failed_attempts
        self.lockout_duration = timedelta(minutes=settings.lockout_minutes)
        self.resend_cooldown = timedelta(minutes=settings.verification_resend_minutes)
        self.clock = clock

    def is_locked(self, account: Account) -> bool:
        return account.locked_until is not None and account.locked_until > self.clock()

    def can_resend_verification(self, account: Account) -> bool:
        last_sent = account.last_verification_sent_at
        if last_sent is None:
            return True
        return last_sent <= self.clock() - self.resend_cooldown

    def failed_login_state(self, account: Account) -> LockoutState:
        """State an account should hold after one more failed login."""
        now = self.clock()
        if account.locked_until is not None and account.locked_until < now:
            return LockoutState(failed_attempt_count=1)

        count = (account.failed_attempt_count or 0) + 1
        locked_until = account.locked_until
        if locked_until is None and count >= self.max_failed_attempts:
            locked_until = now + self.lockout_duration
        return LockoutState(failed_attempt_count=count, locked_until=locked_until)

    async def record_failed_login(
        self, account: Account, accounts: AccountRepository
    ) -> Account:
        """Apply ``failed_login_state`` through the store's atomic update."""
        now = self.clock()
        was_locked = account.locked_until is not None and account.locked_until > now
        account = await accounts.increment_failed_attempts(
            account,
            now=now,
            max_attempts=self.max_failed_attempts,
            lock_until=now + self.lockout_duration,
        )
        if not was_locked and self.is_locked(account):
            SecurityLogger.log_account_locked(
                account_id=str(account.id),
                email=account.email,
                failed_attempts=account.failed_attempt_count,
                locked_until=account.locked_until,
            )
        return account

    def record_successful_login(self, account: Account) -> None:
        """Reset counters in memory; persisted with the rest of the login write."""
        account.failed_attempt_count = 0
        account.locked_until = None
