"""Tests for authentication endpoints."""
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from vendor_commerce.config import APISettings, Settings
from vendor_commerce.database import AccountRepository
from vendor_commerce.main import create_app

from .conftest import TEST_CODE, TEST_PASSWORD, register_and_verify


def _set_cookie_headers(response):
    return ";".join(response.headers.get_list("set-cookie"))


def test_registration_to_login_scenario(client: TestClient):
    """Register, verify and log in, hitting each failure on the way."""
    payload = {"email": "a@x.com", "password": "Password123", "firstName": "A", "lastName": "B"}

    response = client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["user"]["email"] == "a@x.com"
    assert body["data"]["user"]["firstName"] == "A"
    assert "password" not in body["data"]["user"]
    assert "hashedPassword" not in body["data"]["user"]

    response = client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 409
    assert response.json()["message"] == "User already exists"

    response = client.post(
        "/api/v1/auth/login", json={"email": "a@x.com", "password": "WrongPassword"}
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"

    response = client.post(
        "/api/v1/auth/verify-email", json={"email": "a@x.com", "verificationToken": "0000"}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired verification token"

    response = client.post(
        "/api/v1/auth/verify-email", json={"email": "a@x.com", "verificationToken": TEST_CODE}
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Email verified successfully"

    response = client.post(
        "/api/v1/auth/verify-email", json={"email": "a@x.com", "verificationToken": TEST_CODE}
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Email already verified"

    response = client.post(
        "/api/v1/auth/login", json={"email": "a@x.com", "password": "Password123"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    assert body["data"]["accessToken"]
    assert body["data"]["user"]["roles"] == ["customer"]
    assert body["data"]["user"]["isEmailVerified"] is True


def test_register_duplicate_email_case_insensitive(client: TestClient):
    """Test registration with the same email in different case."""
    client.post("/api/v1/auth/register", json={"email": "dup@example.com", "password": TEST_PASSWORD})

    response = client.post(
        "/api/v1/auth/register", json={"email": "DUP@Example.com", "password": TEST_PASSWORD}
    )

    assert response.status_code == 409
    assert response.json()["success"] is False


def test_register_validation_lists_every_field(client: TestClient):
    """Test that every invalid field is reported."""
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "not-an-email", "password": "short", "phone": "abc"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    errors = {error["field"]: error["message"] for error in body["errors"]}
    assert errors["email"] == "Invalid email address"
    assert errors["password"] == "Password must be at least 8 characters"
    assert errors["phone"] == "Phone number must be at least 10 characters"


def test_passwords_longer_than_bcrypt_input_rejected(client: TestClient):
    """Test that passwords over 72 UTF-8 bytes are refused, not truncated."""
    long_password = "é" * 40

    response = client.post(
        "/api/v1/auth/register", json={"email": "long@example.com", "password": long_password}
    )
    assert response.status_code == 400
    errors = response.json()["errors"]
    assert errors[0]["field"] == "password"
    assert errors[0]["message"] == "Password cannot exceed 72 bytes"

    response = client.post(
        "/api/v1/auth/reset-password",
        json={"email": "long@example.com", "resetToken": TEST_CODE, "newPassword": long_password},
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "newPassword"

    response = client.post(
        "/api/v1/auth/register", json={"email": "long@example.com", "password": "a" * 72}
    )
    assert response.status_code == 201


def test_register_missing_fields(client: TestClient):
    """Test registration with an empty body."""
    response = client.post("/api/v1/auth/register", json={})

    assert response.status_code == 400
    messages = [error["message"] for error in response.json()["errors"]]
    assert "Email is required" in messages
    assert "Password is required" in messages


def test_register_persistence_failure_hides_details(client: TestClient, monkeypatch):
    """Test that a store failure becomes a generic 500."""

    async def broken_add(self, account):
        raise SQLAlchemyError("connection reset")

    monkeypatch.setattr(AccountRepository, "add", broken_add)

    response = client.post(
        "/api/v1/auth/register", json={"email": "x@example.com", "password": TEST_PASSWORD}
    )

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "Internal server error"
    assert "connection reset" not in response.text


def test_login_unknown_account(client: TestClient):
    """Test login with nonexistent user."""
    response = client.post(
        "/api/v1/auth/login",
        json={"email": "nonexistent@example.com", "password": "password123"},
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"
    assert response.headers["www-authenticate"] == "Bearer"


def test_login_unverified_is_throttled(client: TestClient, clock):
    """Test login before verification within and after the resend window."""
    client.post("/api/v1/auth/register", json={"email": "new@example.com", "password": TEST_PASSWORD})
    credentials = {"email": "new@example.com", "password": TEST_PASSWORD}

    response = client.post("/api/v1/auth/login", json=credentials)
    assert response.status_code == 409
    assert response.json()["message"].startswith("Verification code was already sent recently")

    clock.advance(minutes=61)
    response = client.post("/api/v1/auth/login", json=credentials)
    assert response.status_code == 409
    assert response.json()["message"].startswith("Email not verified")


def test_login_sets_session_cookies(client: TestClient):
    """Test that login sets both HTTP-only cookies."""
    register_and_verify(client)

    response = client.post(
        "/api/v1/auth/login", json={"email": "test@example.com", "password": TEST_PASSWORD}
    )

    assert response.status_code == 200
    cookies = _set_cookie_headers(response).lower()
    assert "accesstoken=" in cookies
    assert "refreshtoken=" in cookies
    assert "httponly" in cookies
    assert "samesite=strict" in cookies
    assert response.cookies.get("accessToken") == response.json()["data"]["accessToken"]


def test_lockout_after_failed_logins(client: TestClient, clock):
    """Test that five failures lock the account for thirty minutes."""
    register_and_verify(client)
    wrong = {"email": "test@example.com", "password": "WrongPassword"}
    right = {"email": "test@example.com", "password": TEST_PASSWORD}

    for _ in range(5):
        response = client.post("/api/v1/auth/login", json=wrong)
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    response = client.post("/api/v1/auth/login", json=right)
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"

    clock.advance(minutes=29)
    response = client.post("/api/v1/auth/login", json=right)
    assert response.status_code == 401

    clock.advance(minutes=1)
    response = client.post("/api/v1/auth/login", json=right)
    assert response.status_code == 200


def test_locked_account_looks_like_unknown_account(client: TestClient):
    """Test that a lockout does not reveal that the email is registered."""
    register_and_verify(client)

    results = {}
    for email in ("test@example.com", "ghost@example.com"):
        for _ in range(6):
            response = client.post(
                "/api/v1/auth/login", json={"email": email, "password": "WrongPassword"}
            )
        results[email] = (response.status_code, response.json())

    assert results["test@example.com"] == results["ghost@example.com"]
    assert results["ghost@example.com"][0] == 401


def test_verify_email_unknown_account(client: TestClient):
    """Test verification for an email that was never registered."""
    response = client.post(
        "/api/v1/auth/verify-email",
        json={"email": "ghost@example.com", "verificationToken": TEST_CODE},
    )

    assert response.status_code == 404
    assert response.json()["message"] == "User not found"


def test_verify_email_expired_code(client: TestClient, clock):
    """Test that the correct code fails once ten minutes have passed."""
    client.post("/api/v1/auth/register", json={"email": "late@example.com", "password": TEST_PASSWORD})
    clock.advance(minutes=10)

    response = client.post(
        "/api/v1/auth/verify-email",
        json={"email": "late@example.com", "verificationToken": TEST_CODE},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired verification token"


def test_refresh_token(client: TestClient):
    """Test that the refresh cookie yields a new access token."""
    register_and_verify(client)
    client.post("/api/v1/auth/login", json={"email": "test@example.com", "password": TEST_PASSWORD})

    response = client.get("/api/v1/auth/refresh-token")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Token refreshed successfully"
    assert body["data"]["accessToken"]


def test_refresh_token_requires_cookie(client: TestClient):
    """Test refresh without a refresh cookie."""
    response = client.get("/api/v1/auth/refresh-token")

    assert response.status_code == 401
    assert response.json()["message"] == "Refresh token required"


def test_refresh_token_rejects_garbage(client: TestClient):
    """Test refresh with a cookie that is not a token."""
    response = client.get(
        "/api/v1/auth/refresh-token", headers={"Cookie": "refreshToken=not-a-token"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_refresh_token_rejects_access_token(client: TestClient):
    """Test that an access token cannot be used as a refresh token."""
    register_and_verify(client)
    login = client.post(
        "/api/v1/auth/login", json={"email": "test@example.com", "password": TEST_PASSWORD}
    )
    access_token = login.json()["data"]["accessToken"]
    client.cookies.clear()

    response = client.get(
        "/api/v1/auth/refresh-token", headers={"Cookie": f"refreshToken={access_token}"}
    )

    assert response.status_code == 401


def test_get_current_user_with_bearer(client: TestClient):
    """Test getting current user info from the Authorization header."""
    register_and_verify(client)
    login = client.post(
        "/api/v1/auth/login", json={"email": "test@example.com", "password": TEST_PASSWORD}
    )
    token = login.json()["data"]["accessToken"]
    client.cookies.clear()

    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["data"]["user"]["email"] == "test@example.com"


def test_get_current_user_unauthorized(client: TestClient):
    """Test getting current user without a token."""
    response = client.get("/api/v1/auth/me")

    assert response.status_code == 401
    assert response.json()["message"] == "Access token required"


def test_logout_clears_cookies(client: TestClient):
    """Test logout removes both session cookies."""
    register_and_verify(client)
    client.post("/api/v1/auth/login", json={"email": "test@example.com", "password": TEST_PASSWORD})

    response = client.get("/api/v1/auth/logout")

    assert response.status_code == 200
    assert response.json()["message"] == "Logout successful"
    cookies = _set_cookie_headers(response)
    assert "accessToken=" in cookies
    assert "refreshToken=" in cookies
    assert "Max-Age=0" in cookies


def test_logout_requires_access_token(client: TestClient):
    """Test logout without a session."""
    response = client.get("/api/v1/auth/logout")

    assert response.status_code == 401


def test_password_reset_flow(client: TestClient, clock):
    """Test reset code issue, use and the effect on existing sessions."""
    register_and_verify(client)
    client.post("/api/v1/auth/login", json={"email": "test@example.com", "password": TEST_PASSWORD})
    clock.advance(minutes=1)

    response = client.post(
        "/api/v1/auth/request-password-reset", json={"email": "test@example.com"}
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Password reset token sent to your email"

    response = client.post(
        "/api/v1/auth/reset-password",
        json={"email": "test@example.com", "resetToken": "0000", "newPassword": "NewPassword456"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired password reset token"

    response = client.post(
        "/api/v1/auth/reset-password",
        json={"email": "test@example.com", "resetToken": TEST_CODE, "newPassword": "NewPassword456"},
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Password reset successfully"

    # Refresh token from before the reset no longer works
    response = client.get("/api/v1/auth/refresh-token")
    assert response.status_code == 401
    assert response.json()["message"] == "Token issued before password change"

    response = client.post(
        "/api/v1/auth/login", json={"email": "test@example.com", "password": TEST_PASSWORD}
    )
    assert response.status_code == 401

    response = client.post(
        "/api/v1/auth/login", json={"email": "test@example.com", "password": "NewPassword456"}
    )
    assert response.status_code == 200


def test_request_password_reset_unverified(client: TestClient):
    """Test reset request for an account that is not verified."""
    client.post("/api/v1/auth/register", json={"email": "new@example.com", "password": TEST_PASSWORD})

    response = client.post("/api/v1/auth/request-password-reset", json={"email": "new@example.com"})

    assert response.status_code == 404
    assert response.json()["message"] == "User not verified"


def test_reset_password_validation(client: TestClient):
    """Test reset with a short new password."""
    response = client.post(
        "/api/v1/auth/reset-password",
        json={"email": "test@example.com", "resetToken": TEST_CODE, "newPassword": "short"},
    )

    assert response.status_code == 400
    errors = response.json()["errors"]
    assert errors[0]["field"] == "newPassword"
    assert errors[0]["message"] == "Password must be at least 8 characters"


def test_unknown_route(client: TestClient):
    """Test the not-found envelope."""
    response = client.get("/api/v1/nowhere")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Not found - GET /api/v1/nowhere"


def test_health_and_root(client: TestClient):
    """Test service endpoints."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["services"]["database"] == "healthy"

    response = client.get("/")
    assert response.status_code == 200
    assert response.headers["x-content-type-options"] == "nosniff"
    assert "x-request-id" in response.headers


def test_rate_limiting(test_settings: Settings, clock):
    """Test that requests over the limit get a 429 envelope."""
    settings = test_settings.model_copy(
        update={"api": APISettings(rate_limit_enabled=True, rate_limit_requests=2)}
    )
    app = create_app(settings, clock=clock)

    with TestClient(app) as client:
        assert client.get("/").status_code == 200
        assert client.get("/").status_code == 200
        response = client.get("/")

    assert response.status_code == 429
    assert response.json()["success"] is False
    assert "retry-after" in response.headers
