"""Authentication orchestration.

Composes the credential store, token service, code generator and security
policy into the account lifecycle: register, verify email, login, refresh,
password reset and logout. Each operation returns a result or raises exactly
one ``BaseAPIException`` subclass.
"""
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..core.clock import Clock, utcnow
from ..core.codes import VerificationCode, VerificationCodeGenerator, code_matches
from ..core.exceptions import (
    BadRequestError,
    ConflictError,
    ExternalServiceError,
    InternalServerError,
    NotFoundError,
    UnauthorizedError,
)
from ..core.logging import AccountLogger, SecurityLogger
from ..core.passwords import PasswordHasher
from ..core.security import Identity
from ..core.tokens import TokenPair, TokenService
from ..database.accounts import AccountRepository
from ..models.account import Account, AccountRole, AccountStatus, normalize_email
from .account_policy import AccountSecurityPolicy
from .email import EmailService

logger = logging.getLogger(__name__)

USER_EXISTS = "User already exists"
USER_NOT_FOUND = "User not found"
USER_NOT_VERIFIED = "User not verified"
INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_INACTIVE = "Account is not active"
VERIFICATION_RECENTLY_SENT = (
    "Verification code was already sent recently. "
    "Please check your email or wait before requesting another."
)
EMAIL_NOT_VERIFIED = (
    "Email not verified. Please check your email for the verification code."
)
INVALID_VERIFICATION_CODE = "Invalid or expired verification token"
INVALID_RESET_CODE = "Invalid or expired password reset token"
TOKEN_BEFORE_PASSWORD_CHANGE = "Token issued before password change"

EMAIL_VERIFICATION = "email_verification"
PASSWORD_RESET = "password_reset"

BLOCKED_STATUSES = frozenset({AccountStatus.INACTIVE.value, AccountStatus.SUSPENDED.value})


class VerificationOutcome(str, enum.Enum):
    VERIFIED = "Email verified successfully"
    ALREADY_VERIFIED = "Email already verified"


@dataclass(frozen=True)
class AccountProfile:
    """Public view of an account; never carries credentials."""

    id: uuid.UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    roles: List[str] = field(default_factory=list)
    status: Optional[str] = None
    vendor_id: Optional[str] = None
    is_email_verified: bool = False

    @classmethod
    def from_account(cls, account: Account) -> "AccountProfile":
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            phone=account.phone,
            roles=list(account.roles or []),
            status=account.status,
            vendor_id=account.vendor_id,
            is_email_verified=account.is_email_verified,
        )


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    profile: AccountProfile


def set_verification_code(account: Account, code: VerificationCode, sent_at: datetime) -> None:
    account.email_verification_code = code.code
    account.email_verification_expires_at = code.expires_at
    account.last_verification_sent_at = sent_at


def clear_verification_code(account: Account) -> None:
    account.email_verification_code = None
    account.email_verification_expires_at = None


def set_reset_code(account: Account, code: VerificationCode) -> None:
    account.password_reset_code = code.code
    account.password_reset_expires_at = code.expires_at


def clear_reset_code(account: Account) -> None:
    account.password_reset_code = None
    account.password_reset_expires_at = None


def change_password(
    account: Account, new_password: str, hasher: PasswordHasher, changed_at: datetime
) -> None:
    """The only place a password hash is (re)computed."""
    account.hashed_password = hasher.hash_password(new_password)
    account.password_changed_at = changed_at


def password_changed_after(account: Account, issued_at: datetime) -> bool:
    """True if the password changed after a token was issued (second precision)."""
    if account.password_changed_at is None:
        return False
    return account.password_changed_at.replace(microsecond=0) > issued_at


class AuthOrchestrator:
    """Account lifecycle operations."""

    def __init__(
        self,
        accounts: AccountRepository,
        tokens: TokenService,
        codes: VerificationCodeGenerator,
        policy: AccountSecurityPolicy,
        hasher: PasswordHasher,
        email: EmailService,
        deliver_codes_by_email: bool = True,
        clock: Clock = utcnow,
    ):
        self.accounts = accounts
        self.tokens = tokens
        self.codes = codes
        self.policy = policy
        self.hasher = hasher
        self.email = email
        self.deliver_codes_by_email = deliver_codes_by_email
        self.clock = clock

    @property
    def code_ttl_minutes(self) -> int:
        return int(self.codes.ttl.total_seconds() // 60)

    async def register(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AccountProfile:
        """Create a pending account and send its first verification code."""
        email = normalize_email(email)
        if await self.accounts.get_by_email(email, include_deleted=True) is not None:
            raise ConflictError(USER_EXISTS)

        now = self.clock()
        verification = self.codes.generate()
        account = Account(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            roles=[AccountRole.CUSTOMER.value],
            status=AccountStatus.PENDING_VERIFICATION.value,
            is_email_verified=False,
            failed_attempt_count=0,
            registration_ip=ip_address,
            registration_user_agent=(user_agent or "")[:255] or None,
        )
        change_password(account, password, self.hasher, now)
        set_verification_code(account, verification, now)

        try:
            account = await self.accounts.add(account)
        except SQLAlchemyError as e:
            logger.exception("Account registration failed for %s", email)
            raise InternalServerError("User registration failed") from e

        AccountLogger.log_account_registered(str(account.id), account.email, ip_address)
        await self._deliver_verification_code(account, verification)
        return AccountProfile.from_account(account)

    async def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
    ) -> LoginResult:
        """Check credentials, lockout and verification, then issue tokens."""
        account = await self.accounts.get_by_email(email)
        if account is None:
            SecurityLogger.log_login_attempt(email, False, ip_address, "unknown_account")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if self.policy.is_locked(account):
            SecurityLogger.log_login_attempt(email, False, ip_address, "account_locked")
            # Same answer as an unknown email; the lock is only visible in the log.
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not self.hasher.verify_password(password, account.hashed_password):
            # Counted even though the caller only sees the generic message.
            await self.policy.record_failed_login(account, self.accounts)
            SecurityLogger.log_login_attempt(email, False, ip_address, "invalid_password")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if account.status in BLOCKED_STATUSES:
            SecurityLogger.log_login_attempt(email, False, ip_address, f"status_{account.status}")
            raise UnauthorizedError(ACCOUNT_INACTIVE)

        if not account.is_email_verified:
            if not self.policy.can_resend_verification(account):
                SecurityLogger.log_login_attempt(email, False, ip_address, "unverified_throttled")
                raise ConflictError(VERIFICATION_RECENTLY_SENT)

            verification = self.codes.generate()
            set_verification_code(account, verification, self.clock())
            await self.accounts.save(account)
            await self._deliver_verification_code(account, verification)
            SecurityLogger.log_login_attempt(email, False, ip_address, "unverified")
            raise ConflictError(EMAIL_NOT_VERIFIED)

        self.policy.record_successful_login(account)
        account.last_login_at = self.clock()
        account.last_login_ip = ip_address
        await self.accounts.save(account)

        SecurityLogger.log_login_attempt(email, True, ip_address)
        return LoginResult(
            tokens=self.tokens.issue_pair(account),
            profile=AccountProfile.from_account(account),
        )

    async def verify_email(self, email: str, code: str) -> VerificationOutcome:
        """Move an account into the verified state; idempotent once verified."""
        account = await self.accounts.get_by_email(email)
        if account is None:
            raise NotFoundError(USER_NOT_FOUND)

        if account.is_email_verified:
            return VerificationOutcome.ALREADY_VERIFIED

        if not code_matches(
            account.email_verification_code,
            account.email_verification_expires_at,
            code,
            self.clock(),
        ):
            raise BadRequestError(INVALID_VERIFICATION_CODE)

        account.is_email_verified = True
        account.status = AccountStatus.ACTIVE.value
        clear_verification_code(account)
        await self.accounts.save(account)

        AccountLogger.log_email_verified(str(account.id), account.email)
        return VerificationOutcome.VERIFIED

    async def refresh_token(
        self,
        account_id: str,
        issued_at: Optional[datetime] = None,
    ) -> TokenPair:
        """Mint a new token pair for an account resolved from a valid refresh token."""
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError(USER_NOT_FOUND)

        if issued_at is not None and password_changed_after(account, issued_at):
            raise UnauthorizedError(TOKEN_BEFORE_PASSWORD_CHANGE)

        AccountLogger.log_tokens_refreshed(str(account.id))
        return self.tokens.issue_pair(account)

    async def request_password_reset(self, email: str) -> None:
        """Issue a reset code to a verified account."""
        account = await self.accounts.get_by_email(email)
        if account is None:
            raise NotFoundError(USER_NOT_FOUND)
        if not account.is_email_verified:
            raise NotFoundError(USER_NOT_VERIFIED)

        reset = self.codes.generate()
        set_reset_code(account, reset)
        await self.accounts.save(account)

        AccountLogger.log_password_reset_requested(str(account.id), account.email)
        if not self.deliver_codes_by_email:
            AccountLogger.log_code_issued(account.email, PASSWORD_RESET, reset.expires_at, code=reset.code)
            return

        AccountLogger.log_code_issued(account.email, PASSWORD_RESET, reset.expires_at)
        try:
            await self.email.send_password_reset_code(
                account.email, reset.code, account.first_name, self.code_ttl_minutes
            )
        except ExternalServiceError as e:
            AccountLogger.log_email_failed(account.email, PASSWORD_RESET, str(e))
            raise

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        """Replace the password when the reset code matches and is unexpired."""
        account = await self.accounts.get_by_email(email)
        if account is None:
            raise NotFoundError(USER_NOT_FOUND)

        now = self.clock()
        if not code_matches(
            account.password_reset_code,
            account.password_reset_expires_at,
            code,
            now,
        ):
            raise BadRequestError(INVALID_RESET_CODE)

        change_password(account, new_password, self.hasher, now)
        clear_reset_code(account)
        await self.accounts.save(account)

        AccountLogger.log_password_reset(str(account.id), account.email)

    async def logout(self, identity: Identity) -> None:
        """Tokens are stateless; logout only records the event."""
        AccountLogger.log_logout(identity.account_id)

    async def get_profile(self, account_id: str) -> AccountProfile:
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError(USER_NOT_FOUND)
        return AccountProfile.from_account(account)

    async def _deliver_verification_code(
        self, account: Account, verification: VerificationCode
    ) -> None:
        if not self.deliver_codes_by_email:
            AccountLogger.log_code_issued(
                account.email, EMAIL_VERIFICATION, verification.expires_at, code=verification.code
            )
            return

        AccountLogger.log_code_issued(account.email, EMAIL_VERIFICATION, verification.expires_at)
        try:
            await self.email.send_verification_code(
                account.email, verification.code, account.first_name, self.code_ttl_minutes
            )
        except ExternalServiceError as e:
            AccountLogger.log_email_failed(account.email, EMAIL_VERIFICATION, str(e))
            # Lift the resend throttle so the user can ask for another code.
            account.last_verification_sent_at = None
            await self.accounts.save(account)
            raise
