"""Main FastAPI application."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, get_settings
from .core.clock import Clock, utcnow
from .core.codes import VerificationCodeGenerator
from .core.logging import configure_logging
from .core.passwords import PasswordHasher
from .core.tokens import TokenService
from .database import Database
from .api.middleware import (
    RequestLoggingMiddleware,
    ErrorHandlingMiddleware,
    RateLimitingMiddleware,
    SecurityHeadersMiddleware,
    register_exception_handlers,
)
from .api.routes import auth
from .schemas.common import HealthResponse
from .services.account_policy import AccountSecurityPolicy
from .services.email import EmailService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings
    # Startup
    configure_logging(settings)
    if settings.database.create_tables:
        await app.state.database.init()
    yield
    # Shutdown
    await app.state.database.close()


def create_app(settings: Optional[Settings] = None, clock: Clock = utcnow) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api.title,
        description=settings.api.description,
        version=settings.api.version,
        lifespan=lifespan
    )

    # Process-wide collaborators, built once from the immutable settings
    app.state.settings = settings
    app.state.clock = clock
    app.state.database = Database(settings.database)
    app.state.token_service = TokenService(settings.auth, clock=clock)
    app.state.password_hasher = PasswordHasher(settings.auth.bcrypt_rounds)
    app.state.code_generator = VerificationCodeGenerator(
        settings.security.code_ttl_minutes, clock=clock
    )
    app.state.account_policy = AccountSecurityPolicy(settings.security, clock=clock)
    app.state.email_service = EmailService(settings.email)

    # Add middleware
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ErrorHandlingMiddleware, settings=settings)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitingMiddleware, settings=settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    # Include routers
    app.include_router(auth.router, prefix=settings.api.prefix)

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "message": settings.api.title,
            "version": settings.api.version,
            "status": "healthy"
        }

    # Health check endpoint
    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        services = {}
        try:
            async with request.app.state.database.session() as session:
                await session.execute(text("SELECT 1"))
            services["database"] = "healthy"
        except (SQLAlchemyError, OSError):
            services["database"] = "unhealthy"

        overall_status = "healthy" if all(
            status == "healthy" for status in services.values()
        ) else "degraded"
        return HealthResponse(
            status=overall_status,
            version=settings.api.version,
            services=services,
        )

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "vendor_commerce.main:create_app",
        factory=True,
        host=_settings.api.host,
        port=_settings.api.port,
        reload=_settings.api.reload,
        workers=_settings.api.workers if not _settings.api.reload else 1,
    )
