"""API middleware and exception handlers for logging, rate limiting and error envelopes."""
import time
import uuid
from typing import Any, Callable, Dict, List

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import Settings
from ..core.exceptions import (
    BaseAPIException,
    InternalServerError,
    NotFoundError,
    TooManyRequestsError,
    ValidationError,
)
from ..core.logging import RequestLogger, SecurityLogger
from ..schemas.common import error_envelope

FIELD_LABELS = {
    "email": "Email",
    "password": "Password",
    "newPassword": "Password",
    "firstName": "First name",
    "lastName": "Last name",
    "phone": "Phone number",
    "verificationToken": "Verification token",
    "resetToken": "Reset token",
}


def _validation_message(error: Dict[str, Any], field: str) -> str:
    label = FIELD_LABELS.get(field, field or "Request body")
    error_type = error.get("type")
    ctx = error.get("ctx") or {}
    if error_type == "missing":
        return f"{label} is required"
    if error_type == "value_error" and "error" in ctx:
        return str(ctx["error"])
    if error_type == "string_too_short":
        return f"{label} must be at least {ctx.get('min_length')} characters"
    if error_type == "string_too_long":
        return f"{label} cannot exceed {ctx.get('max_length')} characters"
    return error.get("msg", "Invalid value")


def validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Flatten every field failure into the envelope's errors list."""
    errors = []
    for error in exc.errors():
        # loc is ("body", "<field>", ...); the request body itself has no field
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(loc) if loc else None
        errors.append({
            "message": _validation_message(error, loc[-1] if loc else ""),
            "field": field,
            "code": error.get("type"),
        })
    return errors


def _exposes_details(settings: Settings) -> bool:
    return settings.debug and not settings.is_production


def api_error_response(exc: BaseAPIException, settings: Settings) -> JSONResponse:
    """Render an application exception as the error envelope."""
    if exc.is_operational or _exposes_details(settings):
        message = exc.message
        errors = exc.serialize_errors()
    else:
        generic = InternalServerError()
        message = generic.message
        errors = generic.serialize_errors()

    extra = {"details": exc.details} if exc.details and _exposes_details(settings) else None
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(message, errors, extra),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Route every expected failure through the error envelope."""

    @app.exception_handler(BaseAPIException)
    async def handle_api_exception(request: Request, exc: BaseAPIException):
        return api_error_response(exc, settings)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return api_error_response(ValidationError(validation_errors(exc)), settings)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            error = NotFoundError(f"Not found - {request.method} {request.url.path}")
            return api_error_response(error, settings)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(
                str(exc.detail), [{"message": str(exc.detail), "code": "HTTP_EXCEPTION"}]
            ),
            headers=getattr(exc, "headers", None),
        )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate request ID
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        # Log request
        start_time = time.time()
        RequestLogger.log_request(
            method=request.method,
            path=str(request.url.path),
            request_id=request_id,
            extra_data={
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent")
            }
        )

        # Process request
        response = await call_next(request)

        # Calculate response time
        response_time_ms = (time.time() - start_time) * 1000

        # Log response
        RequestLogger.log_response(
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
            response_time_ms=response_time_ms,
            request_id=request_id
        )

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id

        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns exceptions that escaped every handler into a 500 envelope."""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except BaseAPIException as e:
            return api_error_response(e, self.settings)

        except Exception as e:
            RequestLogger.log_unhandled_error(
                method=request.method,
                path=str(request.url.path),
                request_id=getattr(request.state, "request_id", None),
            )
            error = InternalServerError()
            extra = {"details": {"message": str(e)}} if _exposes_details(self.settings) else None
            return JSONResponse(
                status_code=error.status_code,
                content=error_envelope(error.message, error.serialize_errors(), extra),
            )


class RateLimitingMiddleware(BaseHTTPMiddleware):
    """Simple in-memory rate limiting middleware."""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.enabled = settings.api.rate_limit_enabled
        self.max_requests = settings.api.rate_limit_requests
        self.window = settings.api.rate_limit_window
        self.request_times = {}  # client_ip -> list of request times
        self.last_sweep = 0.0

    def sweep(self, current_time: float) -> None:
        """Forget clients whose latest request has left the window."""
        for client_ip in list(self.request_times):
            times = self.request_times[client_ip]
            if not times or current_time - times[-1] >= self.window:
                del self.request_times[client_ip]
        self.last_sweep = current_time

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        current_time = time.time()
        if current_time - self.last_sweep >= self.window:
            self.sweep(current_time)

        # Drop requests that left the window
        self.request_times[client_ip] = [
            req_time for req_time in self.request_times.get(client_ip, [])
            if current_time - req_time < self.window
        ]

        # Check rate limit
        if len(self.request_times[client_ip]) >= self.max_requests:
            SecurityLogger.log_rate_limit_exceeded(
                ip_address=client_ip,
                path=str(request.url.path)
            )
            error = TooManyRequestsError("Too many requests, please try again later")
            return JSONResponse(
                status_code=error.status_code,
                content=error_envelope(error.message, error.serialize_errors()),
                headers={"Retry-After": str(self.window)},
            )

        # Add current request time
        self.request_times[client_ip].append(current_time)

        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Add security headers
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
