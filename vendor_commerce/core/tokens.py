"""Signed access and refresh tokens.

Tokens are stateless JWTs signed with the process-wide secret. The service
knows nothing about how tokens travel (header or cookie); it only issues and
verifies them.
"""
import uuid
from calendar import timegm
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from ..config import AuthSettings
from .clock import Clock, utcnow
from .exceptions import MalformedTokenError, TokenExpiredError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh token issued together."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenClaims:
    """Verified token contents."""

    subject: str
    token_type: str
    issued_at: datetime
    expires_at: datetime
    token_id: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = field(default_factory=list)
    vendor_id: Optional[str] = None


def _timestamp(moment: datetime) -> int:
    return timegm(moment.utctimetuple())


def _from_timestamp(value: int) -> datetime:
    return datetime(1970, 1, 1) + timedelta(seconds=value)


class TokenService:
    """Issues and verifies signed tokens."""

    def __init__(self, settings: AuthSettings, clock: Clock = utcnow):
        self.secret_key = settings.secret_key
        self.algorithm = settings.algorithm
        self.access_token_ttl = timedelta(minutes=settings.access_token_expire_minutes)
        self.refresh_token_ttl = timedelta(days=settings.refresh_token_expire_days)
        self.clock = clock

    def _encode(self, claims: dict, token_type: str, ttl: timedelta) -> str:
        issued_at = self.clock()
        to_encode = dict(claims)
        to_encode.update({
            "type": token_type,
            "iat": _timestamp(issued_at),
            "exp": _timestamp(issued_at + ttl),
            # Unique per token so two tokens minted in the same second differ.
            "jti": uuid.uuid4().hex,
        })
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def issue_access_token(
        self,
        account_id: str,
        email: str,
        roles: List[str],
        vendor_id: Optional[str] = None,
    ) -> str:
        """Create JWT access token."""
        return self._encode(
            {
                "sub": str(account_id),
                "email": email,
                "roles": list(roles),
                "vendor_id": str(vendor_id) if vendor_id else None,
            },
            ACCESS_TOKEN_TYPE,
            self.access_token_ttl,
        )

    def issue_refresh_token(self, account_id: str) -> str:
        """Create JWT refresh token."""
        return self._encode(
            {"sub": str(account_id)},
            REFRESH_TOKEN_TYPE,
            self.refresh_token_ttl,
        )

    def issue_pair(self, account) -> TokenPair:
        """Create both tokens for an account record."""
        return TokenPair(
            access_token=self.issue_access_token(
                account.id, account.email, account.roles, account.vendor_id
            ),
            refresh_token=self.issue_refresh_token(account.id),
        )

    def verify(self, token: str, expected_type: Optional[str] = None) -> TokenClaims:
        """Verify and decode a token.

        Raises:
            TokenExpiredError: the token is past its expiry.
            MalformedTokenError: the token cannot be decoded, its signature
                does not match, or its claims are incomplete or of the wrong
                type.
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except JWTError as e:
            raise MalformedTokenError() from e

        subject = payload.get("sub")
        token_type = payload.get("type")
        if not subject or token_type not in (ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE):
            raise MalformedTokenError()
        if expected_type is not None and token_type != expected_type:
            raise MalformedTokenError(f"Expected {expected_type} token")
        if not isinstance(payload.get("iat"), int) or not isinstance(payload.get("exp"), int):
            raise MalformedTokenError()

        return TokenClaims(
            subject=subject,
            token_type=token_type,
            issued_at=_from_timestamp(payload["iat"]),
            expires_at=_from_timestamp(payload["exp"]),
            token_id=payload.get("jti"),
            email=payload.get("email"),
            roles=list(payload.get("roles") or []),
            vendor_id=payload.get("vendor_id"),
        )
