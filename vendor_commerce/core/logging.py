"""Logging configuration and utilities."""
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from structlog.stdlib import LoggerFactory

from ..config import Settings


def configure_logging(settings: Settings):
    """Configure structured logging."""

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.monitoring.log_level.upper()),
    )

    # Set third-party log levels
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


class RequestLogger:
    """Request logging utility."""

    @staticmethod
    def log_request(
        method: str,
        path: str,
        request_id: str = None,
        extra_data: Dict[str, Any] = None
    ):
        """Log incoming request."""
        logger = structlog.get_logger("api.request")
        logger.info(
            "Request started",
            method=method,
            path=path,
            request_id=request_id,
            **(extra_data or {})
        )

    @staticmethod
    def log_response(
        method: str,
        path: str,
        status_code: int,
        response_time_ms: float,
        request_id: str = None,
    ):
        """Log response."""
        logger = structlog.get_logger("api.response")
        logger.info(
            "Request completed",
            method=method,
            path=path,
            status_code=status_code,
            response_time_ms=response_time_ms,
            request_id=request_id,
        )

    @staticmethod
    def log_unhandled_error(
        method: str,
        path: str,
        request_id: str = None,
    ):
        """Log an exception that escaped every handler, with traceback."""
        logger = structlog.get_logger("api.error")
        logger.exception(
            "Unhandled exception",
            method=method,
            path=path,
            request_id=request_id,
        )


class AccountLogger:
    """Account lifecycle event logging utility."""

    @staticmethod
    def log_account_registered(account_id: str, email: str, ip_address: str = None):
        """Log account registration."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "Account registered",
            event_type="account_registered",
            account_id=account_id,
            email=email,
            ip_address=ip_address,
        )

    @staticmethod
    def log_code_issued(
        email: str,
        purpose: str,
        expires_at: datetime,
        code: Optional[str] = None,
    ):
        """Log a one-time code; the code itself only appears when it is not emailed."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "One-time code issued",
            event_type="code_issued",
            email=email,
            purpose=purpose,
            expires_at=expires_at.isoformat(),
            code=code,
        )

    @staticmethod
    def log_email_verified(account_id: str, email: str):
        """Log successful email verification."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "Email verified",
            event_type="email_verified",
            account_id=account_id,
            email=email,
        )

    @staticmethod
    def log_password_reset_requested(account_id: str, email: str):
        """Log password reset request."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "Password reset requested",
            event_type="password_reset_requested",
            account_id=account_id,
            email=email,
        )

    @staticmethod
    def log_password_reset(account_id: str, email: str):
        """Log completed password reset."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "Password reset",
            event_type="password_reset",
            account_id=account_id,
            email=email,
        )

    @staticmethod
    def log_tokens_refreshed(account_id: str):
        logger = structlog.get_logger("business.session")
        logger.info("Tokens refreshed", event_type="tokens_refreshed", account_id=account_id)

    @staticmethod
    def log_logout(account_id: str):
        logger = structlog.get_logger("business.session")
        logger.info("Logged out", event_type="logout", account_id=account_id)

    @staticmethod
    def log_email_failed(email: str, purpose: str, error_message: str):
        """Log a failed email dispatch."""
        logger = structlog.get_logger("business.email")
        logger.error(
            "Email delivery failed",
            event_type="email_failed",
            email=email,
            purpose=purpose,
            error_message=error_message,
        )


class SecurityLogger:
    """Security event logging utility."""

    @staticmethod
    def log_login_attempt(
        email: str,
        success: bool,
        ip_address: str = None,
        failure_reason: str = None
    ):
        """Log login attempt."""
        logger = structlog.get_logger("security.auth")
        logger.info(
            "Login attempt",
            event_type="login_attempt",
            email=email,
            success=success,
            ip_address=ip_address,
            failure_reason=failure_reason
        )

    @staticmethod
    def log_account_locked(
        account_id: str,
        email: str,
        failed_attempts: int,
        locked_until: datetime,
    ):
        """Log an account entering lockout."""
        logger = structlog.get_logger("security.auth")
        logger.warning(
            "Account locked",
            event_type="account_locked",
            account_id=account_id,
            email=email,
            failed_attempts=failed_attempts,
            locked_until=locked_until.isoformat(),
        )

    @staticmethod
    def log_unauthorized_access(
        path: str,
        method: str,
        ip_address: str = None,
        reason: str = None
    ):
        """Log unauthorized access attempt."""
        logger = structlog.get_logger("security.access")
        logger.warning(
            "Unauthorized access attempt",
            event_type="unauthorized_access",
            path=path,
            method=method,
            ip_address=ip_address,
            reason=reason
        )

    @staticmethod
    def log_forbidden_access(
        account_id: str,
        required_roles: List[str],
        roles: List[str],
    ):
        """Log an authenticated caller lacking a role."""
        logger = structlog.get_logger("security.access")
        logger.warning(
            "Forbidden access attempt",
            event_type="forbidden_access",
            account_id=account_id,
            required_roles=required_roles,
            roles=roles,
        )

    @staticmethod
    def log_rate_limit_exceeded(
        ip_address: str,
        path: str,
        limit_type: str = "general"
    ):
        """Log rate limit exceeded."""
        logger = structlog.get_logger("security.rate_limit")
        logger.warning(
            "Rate limit exceeded",
            event_type="rate_limit_exceeded",
            ip_address=ip_address,
            path=path,
            limit_type=limit_type
        )
