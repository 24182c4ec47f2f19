"""Account persistence (the credential store)."""
import asyncio
import logging
import uuid
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import and_, case, null, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ConflictError
from ..models.account import Account, normalize_email

logger = logging.getLogger(__name__)


class AccountRepository:
    """Repository-style access to account records.

    Every mutating call commits before returning so that state written on the
    way to an error response (failed-login counters, fresh verification codes)
    survives the request's rollback.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self) -> None:
        # A client disconnect must not abandon a half-written record.
        commit = asyncio.ensure_future(self.session.commit())
        try:
            await asyncio.shield(commit)
        except asyncio.CancelledError:
            # The caller closes the session next; it must not race the commit.
            await commit
            raise

    async def get_by_email(self, email: str, include_deleted: bool = False) -> Optional[Account]:
        """Get account by email, case-insensitively."""
        stmt = select(Account).where(Account.email == normalize_email(email))
        if not include_deleted:
            stmt = stmt.where(Account.is_deleted.is_(False))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, account_id: Union[str, uuid.UUID]) -> Optional[Account]:
        """Get account by ID."""
        if not isinstance(account_id, uuid.UUID):
            try:
                account_id = uuid.UUID(str(account_id))
            except ValueError:
                return None
        stmt = select(Account).where(
            Account.id == account_id, Account.is_deleted.is_(False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, account: Account) -> Account:
        """Insert a new account.

        Raises:
            ConflictError: an account with the same email already exists.
        """
        account.email = normalize_email(account.email)
        self.session.add(account)
        try:
            await self._commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info("Duplicate account rejected by store: %s", account.email)
            raise ConflictError("User already exists") from e
        await self.session.refresh(account)
        return account

    async def save(self, account: Account) -> Account:
        """Persist changes made to a loaded account."""
        account.version = (account.version or 0) + 1
        await self._commit()
        return account

    async def increment_failed_attempts(
        self,
        account: Account,
        *,
        now: datetime,
        max_attempts: int,
        lock_until: datetime,
    ) -> Account:
        """Record a failed login in one atomic UPDATE.

        An expired lock is cleared and the counter restarts at 1; otherwise the
        counter is incremented and the lock is set once it reaches
        ``max_attempts``. All CASE branches read the pre-update row.
        """
        lock_expired = and_(Account.locked_until.is_not(None), Account.locked_until < now)
        reaches_limit = and_(
            Account.locked_until.is_(None),
            Account.failed_attempt_count + 1 >= max_attempts,
        )
        stmt = (
            update(Account)
            .where(Account.id == account.id)
            .values(
                failed_attempt_count=case(
                    (lock_expired, 1),
                    else_=Account.failed_attempt_count + 1,
                ),
                locked_until=case(
                    (lock_expired, null()),
                    (reaches_limit, lock_until),
                    else_=Account.locked_until,
                ),
                version=Account.version + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self._commit()
        await self.session.refresh(account)
        return account
