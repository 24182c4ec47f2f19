"""Session cookies for issued tokens."""
from fastapi import Response

from ..config import Settings
from ..core.security import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE
from ..core.tokens import TokenPair

ACCESS_COOKIE_MAX_AGE = 24 * 60 * 60  # 1 day


def _cookie_options(settings: Settings) -> dict:
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "strict",
        "domain": settings.auth.cookie_domain,
        "path": "/",
    }


def set_session_cookies(response: Response, tokens: TokenPair, settings: Settings) -> None:
    """Attach both tokens as HTTP-only cookies."""
    options = _cookie_options(settings)
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=ACCESS_COOKIE_MAX_AGE,
        **options,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=settings.auth.refresh_cookie_max_age_days * 24 * 60 * 60,
        **options,
    )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    """Expire both session cookies."""
    options = _cookie_options(settings)
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(name, **options)
