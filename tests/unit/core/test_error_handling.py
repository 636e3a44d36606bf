"""
Tests for error handling middleware.
Tests exception classification, the error envelope and secret scrubbing.
"""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, OperationalError

from core.middleware.authentication import TokenInvalidError, UserInactiveError
from core.middleware.authorization import AuthorityDenied, InsufficientPermissions
from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    classify_exception,
    sanitize_error_message,
    setup_error_handlers,
)
from core.workflow import ApplicationStatus, InvalidStatusTransition


class TestSensitiveDataSanitization:
    """Test secret scrubbing in error messages."""

    @pytest.mark.parametrize("message", [
        'password="secret123"',
        "token=abc.def.ghi",
        "api_key: sk_live_12345",
        "client_secret=xyz",
        "Authorization: Bearer eyJhbGciOi",
    ])
    def test_secrets_redacted(self, message):
        """Credentials never survive sanitization."""
        sanitized = sanitize_error_message(message)
        assert "[REDACTED]" in sanitized
        for secret in ("secret123", "abc.def.ghi", "sk_live_12345", "xyz", "eyJhbGciOi"):
            assert secret not in sanitized

    def test_plain_message_untouched(self):
        """Ordinary messages pass through."""
        assert sanitize_error_message("Job not found") == "Job not found"

    @pytest.mark.parametrize("message", [
        "Current password is incorrect",
        "This reset link is invalid or has already been used. Please request a new one.",
        "Invalid or expired token",
    ])
    def test_prose_mentioning_credentials_untouched(self, message):
        """Only key/value forms are scrubbed, not sentences naming a credential."""
        assert sanitize_error_message(message) == message

    def test_none(self):
        """None becomes an empty string."""
        assert sanitize_error_message(None) == ""


class TestClassifyException:
    """Test exception to status mapping."""

    def test_authentication(self):
        """Bad tokens are 401 with a Bearer challenge."""
        info = classify_exception(TokenInvalidError("Invalid authentication token"))
        assert info.status_code == 401
        assert info.code == "TOKEN_INVALID"
        assert info.headers == {"WWW-Authenticate": "Bearer"}

    def test_inactive_user(self):
        """Deactivated accounts are 403."""
        info = classify_exception(UserInactiveError("User account is inactive"))
        assert info.status_code == 403
        assert info.code == "USER_INACTIVE"

    @pytest.mark.parametrize("exc", [
        InsufficientPermissions("You do not have permission: jobs:edit"),
        AuthorityDenied("You cannot change your own role"),
    ])
    def test_authorization(self, exc):
        """Permission and authority denials are 403 PERMISSION_DENIED."""
        info = classify_exception(exc)
        assert info.status_code == 403
        assert info.code == "PERMISSION_DENIED"
        assert info.message == str(exc)

    def test_status_transition(self):
        """Illegal workflow moves are 409 with both statuses."""
        info = classify_exception(
            InvalidStatusTransition(ApplicationStatus.HIRED, ApplicationStatus.REJECTED)
        )
        assert info.status_code == 409
        assert info.code == "INVALID_STATUS_TRANSITION"
        assert info.details == {"current": "hired", "requested": "rejected"}

    def test_integrity_error(self):
        """Constraint violations are 409 without details outside debug."""
        info = classify_exception(IntegrityError("INSERT", {}, Exception("duplicate")))
        assert info.status_code == 409
        assert info.details is None

    def test_operational_error(self):
        """Lost database connections are 503."""
        info = classify_exception(OperationalError("SELECT 1", {}, Exception("gone")))
        assert info.status_code == 503

    def test_unknown(self):
        """Anything else is a generic 500."""
        info = classify_exception(RuntimeError("password=hunter2"))
        assert info.status_code == 500
        assert info.message == "An unexpected error occurred"
        assert info.details is None

    def test_unknown_in_debug(self):
        """Debug mode exposes a scrubbed message."""
        info = classify_exception(RuntimeError("password=hunter2"), debug=True)
        assert "hunter2" not in info.details["message"]


class Item(BaseModel):
    name: str


@pytest.fixture
def client():
    app = FastAPI()
    setup_error_handlers(app)
    app.add_middleware(ErrorHandlingMiddleware, debug=False)

    @app.get("/missing")
    async def missing():
        raise HTTPException(status_code=404, detail="Job not found")

    @app.get("/denied")
    async def denied():
        raise AuthorityDenied("Only the super admin can manage admin accounts")

    @app.get("/transition")
    async def transition():
        raise InvalidStatusTransition(ApplicationStatus.REJECTED, ApplicationStatus.PENDING)

    @app.post("/items")
    async def create(item: Item):
        return item

    @app.get("/boom")
    async def boom():
        raise RuntimeError("token=abc123")

    return TestClient(app, raise_server_exceptions=False)


class TestErrorEnvelope:
    """Test responses produced by the handlers and middleware."""

    def test_http_exception(self, client):
        """HTTP errors use the envelope."""
        response = client.get("/missing")
        assert response.status_code == 404
        assert response.json() == {
            "error": {
                "code": "NOT_FOUND",
                "message": "Job not found",
                "path": "/missing",
                "method": "GET",
            }
        }

    def test_authority_denied(self, client):
        """Authority denials are 403 with the rule's message."""
        response = client.get("/denied")
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Only the super admin can manage admin accounts"

    def test_transition(self, client):
        """Workflow errors are 409."""
        response = client.get("/transition")
        assert response.status_code == 409
        assert response.json()["error"]["details"]["current"] == "rejected"

    def test_validation(self, client):
        """Body validation failures list the offending fields."""
        response = client.post("/items", json={})
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "body.name"

    def test_request_id_echoed(self, client):
        """A supplied request id is returned in the envelope."""
        response = client.get("/missing", headers={"x-request-id": "req-123"})
        assert response.json()["error"]["request_id"] == "req-123"

    def test_unhandled(self, client):
        """Unhandled errors are 500 and leak nothing."""
        response = client.get("/boom")
        assert response.status_code == 500
        assert "abc123" not in response.text
