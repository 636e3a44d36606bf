"""
Tests for core security utilities.

Tests:
- Password hashing and verification
- Access token creation and validation
- Opaque token hashing
- Audit events and PII masking
"""

import logging
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from core.config import settings
from core.security import (
    AuditAction,
    ResourceType,
    TokenError,
    create_access_token,
    decode_access_token,
    generate_invitation_token,
    hash_ip_address,
    hash_password,
    hash_token,
    log_audit_event,
    mask_pii,
    verify_password,
)


class TestPasswordHashing:
    """Test password hashing and verification."""

    def test_hash_password(self):
        """Test password hashing."""
        hashed = hash_password("SecurePassword123!")

        assert isinstance(hashed, str)
        assert hashed != "SecurePassword123!"
        assert hashed.startswith("$2b$")  # bcrypt format

    def test_hash_password_different_each_time(self):
        """Test that hashing same password produces different hashes."""
        assert hash_password("SecurePassword123!") != hash_password("SecurePassword123!")

    def test_verify_password_success(self):
        """Test successful password verification."""
        hashed = hash_password("SecurePassword123!")
        assert verify_password("SecurePassword123!", hashed) is True

    def test_verify_password_failure(self):
        """Test failed password verification."""
        hashed = hash_password("SecurePassword123!")
        assert verify_password("WrongPassword123!", hashed) is False

    def test_verify_without_hash(self):
        """Accounts without a password (pending invitations) never match."""
        assert verify_password("anything", None) is False
        assert verify_password("anything", "") is False

    def test_verify_malformed_hash(self):
        """A corrupt stored hash is a mismatch, not an error."""
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestAccessTokens:
    """Test JWT access tokens."""

    def test_create_and_decode(self):
        """Token round-trips its claims."""
        token = create_access_token(42, "jane@example.com", ["staff"])
        payload = decode_access_token(token)

        assert payload["user_id"] == 42
        assert payload["sub"] == "42"
        assert payload["email"] == "jane@example.com"
        assert payload["roles"] == ["staff"]
        assert payload["type"] == "access"

    def test_tokens_are_unique(self):
        """Each token carries its own jti."""
        first = decode_access_token(create_access_token(1, "a@example.com", []))
        second = decode_access_token(create_access_token(1, "a@example.com", []))
        assert first["jti"] != second["jti"]

    def test_expired_token(self):
        """Expired tokens are rejected with an expiry message."""
        token = create_access_token(1, "a@example.com", [], expires_delta=timedelta(seconds=-1))
        with pytest.raises(TokenError, match="expired"):
            decode_access_token(token)

    def test_wrong_secret(self):
        """Tokens signed with another key are invalid."""
        token = create_access_token(1, "a@example.com", [], secret_key="another-secret-key-of-enough-length")
        with pytest.raises(TokenError, match="Invalid token"):
            decode_access_token(token)

    def test_garbage_token(self):
        """Malformed tokens are invalid."""
        with pytest.raises(TokenError):
            decode_access_token("not.a.jwt")

    def test_wrong_type(self):
        """Tokens without the access type are rejected."""
        now = datetime.now(timezone.utc)
        token = pyjwt.encode(
            {"user_id": 1, "type": "refresh", "exp": now + timedelta(minutes=5)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(TokenError, match="type"):
            decode_access_token(token)


class TestOpaqueTokens:
    """Test invitation tokens and digests."""

    def test_invitation_tokens_are_random(self):
        """Invitation tokens are long and unique."""
        a, b = generate_invitation_token(), generate_invitation_token()
        assert a != b
        assert len(a) >= 32

    def test_hash_token_is_stable(self):
        """The stored digest is deterministic and not the token itself."""
        token = generate_invitation_token()
        assert hash_token(token) == hash_token(token)
        assert hash_token(token) != token
        assert len(hash_token(token)) == 64

    def test_hash_ip_address(self):
        """IP digests hide the address."""
        digest = hash_ip_address("203.0.113.9")
        assert "203.0.113.9" not in digest
        assert digest == hash_ip_address("203.0.113.9")
        assert digest != hash_ip_address("203.0.113.10")


class TestAuditLogging:
    """Test audit events."""

    def test_event_shape(self, caplog):
        """Audit events carry action, resource and actor."""
        with caplog.at_level(logging.INFO, logger="security.audit"):
            event = log_audit_event(
                AuditAction.PUBLISH, ResourceType.JOB, resource_id=7, user_id=3,
                details={"job_number": "JN-0007"},
            )

        assert event["action"] == "PUBLISH"
        assert event["resource_type"] == "JOB"
        assert event["resource_id"] == "7"
        assert event["user_id"] == 3
        assert event["details"] == {"job_number": "JN-0007"}
        assert "JN-0007" in caplog.text

    def test_pii_details_are_masked(self):
        """Details flagged as PII are masked before logging."""
        event = log_audit_event(
            AuditAction.DELETE, ResourceType.USER, resource_id=5,
            details={"email": "jane@example.com", "role": "staff"},
            contains_pii=True,
        )
        assert event["details"]["email"] == "j***[16]"
        assert event["details"]["role"] == "staff"


class TestMaskPII:
    """Test PII masking."""

    def test_nested(self):
        """Nested PII fields are masked."""
        data = {"applicant": {"first_name": "Jane", "phone": "", "status": "pending"}}
        masked = mask_pii(data)
        assert masked["applicant"]["first_name"] == "J***[4]"
        assert masked["applicant"]["phone"] == "[MASKED]"
        assert masked["applicant"]["status"] == "pending"

    def test_lists_are_truncated(self):
        """Only the first five list items are kept."""
        assert len(mask_pii({"items": list(range(10))})["items"]) == 5

    def test_depth_limit(self):
        """Very deep structures are cut off."""
        data = {}
        node = data
        for _ in range(15):
            node["child"] = {}
            node = node["child"]
        masked = mask_pii(data)
        for _ in range(11):
            masked = masked["child"]
        assert masked == "[MAX_DEPTH]"
