"""Authentication routes."""
from fastapi import APIRouter, Depends, Request, Response, status

from ...config import Settings
from ...core.security import Identity, get_current_identity, get_refresh_identity
from ...schemas.auth import (
    AccessTokenData,
    CurrentUserData,
    LoginData,
    LoginRequest,
    PasswordResetRequest,
    RegisterData,
    RegisteredUser,
    RegisterRequest,
    ResetPasswordRequest,
    SessionUser,
    VerifyEmailRequest,
)
from ...schemas.common import ApiResponse
from ...services.auth import AuthOrchestrator
from ..dependencies import get_app_settings, get_auth_orchestrator
from ..transport import clear_session_cookies, set_session_cookies

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


@router.post(
    "/register",
    response_model=ApiResponse[RegisterData],
    status_code=status.HTTP_201_CREATED,
)
async def register_user(
    payload: RegisterRequest,
    request: Request,
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    """Register a new account and send its verification code."""
    profile = await auth.register(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return ApiResponse[RegisterData](
        message="User registered successfully. Please check your email for verification.",
        data=RegisterData(user=RegisteredUser.model_validate(profile)),
    )


@router.post("/login", response_model=ApiResponse[LoginData])
async def login_user(
    payload: LoginRequest,
    request: Request,
    response: Response,
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
    settings: Settings = Depends(get_app_settings),
):
    """Login and start a cookie session."""
    result = await auth.login(payload.email, payload.password, ip_address=_client_ip(request))
    set_session_cookies(response, result.tokens, settings)
    return ApiResponse[LoginData](
        message="Login successful",
        data=LoginData(
            user=SessionUser.model_validate(result.profile),
            access_token=result.tokens.access_token,
        ),
    )


@router.post("/verify-email", response_model=ApiResponse[None])
async def verify_email(
    payload: VerifyEmailRequest,
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    """Confirm email ownership with the emailed code."""
    outcome = await auth.verify_email(payload.email, payload.verification_token)
    return ApiResponse[None](message=outcome.value)


@router.get("/refresh-token", response_model=ApiResponse[AccessTokenData])
async def refresh_token(
    response: Response,
    identity: Identity = Depends(get_refresh_identity),
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
    settings: Settings = Depends(get_app_settings),
):
    """Rotate the session using the refresh-token cookie."""
    tokens = await auth.refresh_token(identity.account_id, issued_at=identity.issued_at)
    set_session_cookies(response, tokens, settings)
    return ApiResponse[AccessTokenData](
        message="Token refreshed successfully",
        data=AccessTokenData(access_token=tokens.access_token),
    )


@router.get("/logout", response_model=ApiResponse[None])
async def logout_user(
    response: Response,
    identity: Identity = Depends(get_current_identity),
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
    settings: Settings = Depends(get_app_settings),
):
    """Logout (cookie removal; issued tokens stay valid until they expire)."""
    await auth.logout(identity)
    clear_session_cookies(response, settings)
    return ApiResponse[None](message="Logout successful")


@router.post("/request-password-reset", response_model=ApiResponse[None])
async def request_password_reset(
    payload: PasswordResetRequest,
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    """Send a password reset code to a verified account."""
    await auth.request_password_reset(payload.email)
    return ApiResponse[None](message="Password reset token sent to your email")


@router.post("/reset-password", response_model=ApiResponse[None])
async def reset_password(
    payload: ResetPasswordRequest,
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    """Set a new password using the emailed reset code."""
    await auth.reset_password(payload.email, payload.reset_token, payload.new_password)
    return ApiResponse[None](message="Password reset successfully")


@router.get("/me", response_model=ApiResponse[CurrentUserData])
async def get_current_user_info(
    identity: Identity = Depends(get_current_identity),
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    """Get current account information."""
    profile = await auth.get_profile(identity.account_id)
    return ApiResponse[CurrentUserData](
        message="Success",
        data=CurrentUserData(user=SessionUser.model_validate(profile)),
    )
