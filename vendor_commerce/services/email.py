"""Service for sending account emails over SMTP."""
import asyncio
import html
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ..config import EmailSettings
from ..core.exceptions import ExternalServiceError


class EmailService:
    """Sends verification and password-reset codes."""

    def __init__(self, settings: EmailSettings):
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.from_address = settings.from_address
        self.from_name = settings.from_name
        self.timeout = settings.timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.smtp_host and self.from_address)

    async def send_verification_code(
        self,
        to_email: str,
        code: str,
        first_name: Optional[str] = None,
        ttl_minutes: int = 10,
    ) -> None:
        """Send an email verification code."""
        greeting = f"Hello {first_name}," if first_name else "Hello,"
        html_body = f"""
            <p>{html.escape(greeting)}</p>
            <p>Your email verification code is: <strong>{code}</strong></p>
            <p>This code will expire in {ttl_minutes} minutes.</p>
        """
        text_body = (
            f"{greeting}\n\nYour email verification code is: {code}\n"
            f"This code will expire in {ttl_minutes} minutes.\n"
        )
        await self.send(to_email, "Your Email Verification Code", html_body, text_body)

    async def send_password_reset_code(
        self,
        to_email: str,
        code: str,
        first_name: Optional[str] = None,
        ttl_minutes: int = 10,
    ) -> None:
        """Send a password reset code."""
        greeting = f"Hello {first_name}," if first_name else "Hello,"
        html_body = f"""
            <p>{html.escape(greeting)}</p>
            <p>We received a request to reset your password. Use the following code:</p>
            <p><strong>{code}</strong></p>
            <p>This code will expire in {ttl_minutes} minutes.</p>
        """
        text_body = (
            f"{greeting}\n\nWe received a request to reset your password. "
            f"Use the following code: {code}\n"
            f"This code will expire in {ttl_minutes} minutes.\n"
        )
        await self.send(to_email, "Password Reset Request", html_body, text_body)

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        """Send an email, raising ExternalServiceError on any transport failure."""
        if not self.enabled:
            raise ExternalServiceError("Email transport is not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise ExternalServiceError(
                "Failed to send email", details={"reason": str(e)}
            ) from e

    def _deliver(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
            server.starttls()
            if self.smtp_username:
                server.login(self.smtp_username, self.smtp_password)
            server.send_message(msg)
