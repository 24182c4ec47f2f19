"""Identity resolution and role checks."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .exceptions import ForbiddenError, UnauthorizedError
from .logging import SecurityLogger
from .tokens import ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE, TokenService

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

# Security scheme; cookies are the fallback so the header is optional
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Caller resolved from a verified token."""

    account_id: str
    token_type: str
    issued_at: datetime
    email: Optional[str] = None
    roles: List[str] = field(default_factory=list)
    vendor_id: Optional[str] = None


def resolve_identity(
    token: Optional[str],
    token_service: TokenService,
    expected_type: str = ACCESS_TOKEN_TYPE,
) -> Identity:
    """Turn a bearer token into an Identity or raise UnauthorizedError."""
    if not token:
        raise UnauthorizedError(
            "Refresh token required" if expected_type == REFRESH_TOKEN_TYPE
            else "Access token required"
        )

    claims = token_service.verify(token, expected_type=expected_type)
    return Identity(
        account_id=claims.subject,
        token_type=claims.token_type,
        issued_at=claims.issued_at,
        email=claims.email,
        roles=claims.roles,
        vendor_id=claims.vendor_id,
    )


def _resolve_from_request(request: Request, token: Optional[str], expected_type: str) -> Identity:
    try:
        identity = resolve_identity(token, request.app.state.token_service, expected_type)
    except UnauthorizedError as e:
        SecurityLogger.log_unauthorized_access(
            path=str(request.url.path),
            method=request.method,
            ip_address=request.client.host if request.client else None,
            reason=e.message,
        )
        raise
    request.state.identity = identity
    return identity


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """Identity from the Authorization header, falling back to the access cookie."""
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    return _resolve_from_request(request, token, ACCESS_TOKEN_TYPE)


async def get_refresh_identity(request: Request) -> Identity:
    """Identity from the refresh-token cookie."""
    token = request.cookies.get(REFRESH_TOKEN_COOKIE)
    return _resolve_from_request(request, token, REFRESH_TOKEN_TYPE)


def check_roles(identity: Identity, roles: Iterable[str], require_all: bool = False) -> None:
    """Raise ForbiddenError unless the identity holds any (or all) of ``roles``."""
    required = list(roles)
    held = set(identity.roles)
    allowed = all(r in held for r in required) if require_all else any(r in held for r in required)
    if not allowed:
        SecurityLogger.log_forbidden_access(identity.account_id, required, identity.roles)
        if require_all:
            raise ForbiddenError("All required roles needed")
        raise ForbiddenError("You do not have permission to access this resource")


class RoleChecker:
    """Role checker dependency for route-level role requirements."""

    def __init__(self, allowed_roles: Iterable[str], require_all: bool = False):
        self.allowed_roles = [str(getattr(r, "value", r)) for r in allowed_roles]
        self.require_all = require_all

    def __call__(self, identity: Identity = Depends(get_current_identity)) -> Identity:
        check_roles(identity, self.allowed_roles, self.require_all)
        return identity


def require_roles(*roles: str) -> RoleChecker:
    """Dependency requiring any one of ``roles``."""
    return RoleChecker(roles)


def require_all_roles(*roles: str) -> RoleChecker:
    """Dependency requiring every one of ``roles``."""
    return RoleChecker(roles, require_all=True)
