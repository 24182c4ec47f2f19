"""FastAPI dependencies wiring request-scoped services."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..database import AccountRepository, get_db
from ..services.auth import AuthOrchestrator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_orchestrator(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthOrchestrator:
    """Orchestrator bound to this request's database session."""
    state = request.app.state
    return AuthOrchestrator(
        accounts=AccountRepository(db),
        tokens=state.token_service,
        codes=state.code_generator,
        policy=state.account_policy,
        hasher=state.password_hasher,
        email=state.email_service,
        deliver_codes_by_email=state.settings.delivers_email,
        clock=state.clock,
    )
