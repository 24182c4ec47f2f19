"""Test configuration and fixtures."""
from datetime import timedelta

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from vendor_commerce.config import (
    APISettings,
    AuthSettings,
    DatabaseSettings,
    EmailSettings,
    Settings,
)
from vendor_commerce.core.clock import utcnow
from vendor_commerce.core.codes import VerificationCode, VerificationCodeGenerator
from vendor_commerce.core.exceptions import ExternalServiceError
from vendor_commerce.core.passwords import PasswordHasher
from vendor_commerce.core.tokens import TokenService
from vendor_commerce.database import AccountRepository, Database
from vendor_commerce.main import create_app
from vendor_commerce.services.account_policy import AccountSecurityPolicy
from vendor_commerce.services.auth import AuthOrchestrator
from vendor_commerce.services.email import EmailService

TEST_CODE = "1234"
TEST_PASSWORD = "Password123"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now=None):
        self.now = now or utcnow().replace(microsecond=0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FixedCodeGenerator(VerificationCodeGenerator):
    """Always hands out the same code so tests can submit it."""

    def __init__(self, code, clock, ttl_minutes=10):
        super().__init__(ttl_minutes, clock=clock)
        self.code = code

    def generate(self):
        return VerificationCode(code=self.code, expires_at=self.clock() + self.ttl)


class RecordingEmailService(EmailService):
    """Email service that records messages instead of talking SMTP."""

    def __init__(self, fail=False):
        super().__init__(EmailSettings(smtp_host="smtp.test"))
        self.sent = []
        self.fail = fail

    async def send(self, to_email, subject, html_body, text_body):
        if self.fail:
            raise ExternalServiceError("Failed to send email")
        self.sent.append({"to": to_email, "subject": subject, "text": text_body})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        environment="test",
        debug=False,
        database=DatabaseSettings(url="sqlite+aiosqlite://"),
        auth=AuthSettings(
            secret_key="test-secret-key-for-signing-tokens",
            bcrypt_rounds=4,
        ),
        api=APISettings(rate_limit_enabled=False),
    )


@pytest.fixture
def app(test_settings, clock):
    """Application with a deterministic code generator and clock."""
    application = create_app(test_settings, clock=clock)
    application.state.code_generator = FixedCodeGenerator(TEST_CODE, clock)
    return application


@pytest.fixture
def client(app):
    """Create test client; the lifespan creates the in-memory schema."""
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def async_session(test_settings):
    """Async session on a fresh in-memory database."""
    database = Database(test_settings.database)
    await database.init()
    async with database.session() as session:
        yield session
    await database.close()


@pytest.fixture
def token_service(test_settings, clock):
    return TokenService(test_settings.auth, clock=clock)


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def policy(test_settings, clock):
    return AccountSecurityPolicy(test_settings.security, clock=clock)


@pytest.fixture
def emails():
    return RecordingEmailService()


@pytest.fixture
def accounts(async_session):
    return AccountRepository(async_session)


@pytest.fixture
def orchestrator(accounts, token_service, policy, hasher, emails, clock):
    """Orchestrator that logs codes instead of emailing them."""
    return AuthOrchestrator(
        accounts=accounts,
        tokens=token_service,
        codes=FixedCodeGenerator(TEST_CODE, clock),
        policy=policy,
        hasher=hasher,
        email=emails,
        deliver_codes_by_email=False,
        clock=clock,
    )


@pytest_asyncio.fixture
async def verified_account(orchestrator):
    """Registered and verified account."""
    await orchestrator.register("test@example.com", TEST_PASSWORD, "Test", "User")
    await orchestrator.verify_email("test@example.com", TEST_CODE)
    return await orchestrator.accounts.get_by_email("test@example.com")


def register_and_verify(client, email="test@example.com", password=TEST_PASSWORD):
    """Register and verify an account over HTTP."""
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": password, "firstName": "Test", "lastName": "User"},
    )
    assert response.status_code == 201
    response = client.post(
        "/api/v1/auth/verify-email",
        json={"email": email, "verificationToken": TEST_CODE},
    )
    assert response.status_code == 200
    return response
