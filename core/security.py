"""
Security utilities.

Password hashing (bcrypt), access tokens (PyJWT), invitation tokens,
client IP hashing for anonymous view tracking, and structured audit logging
for administrative actions.
"""

import hashlib
import json
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Set

import bcrypt
import jwt

from core.config import settings

logger = logging.getLogger("security.audit")


class TokenError(Exception):
    """Raised when an access token cannot be decoded or is not usable."""


# ==================== Passwords ==================== #

def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Check a password against a stored bcrypt hash. Accounts without one never match."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ==================== Access tokens ==================== #

def create_access_token(
    user_id: int,
    email: str,
    roles: list[str],
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: Subject user ID
        email: Subject email
        roles: Role names held at issue time (informational only,
            permissions are always re-read from the database)
        secret_key: Signing key, defaults to settings
        algorithm: Signing algorithm, defaults to settings
        expires_delta: Lifetime, defaults to settings

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "email": email,
        "roles": roles,
        "type": "access",
        "iat": now,
        "exp": now + expires_delta,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(
        payload,
        secret_key or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def decode_access_token(
    token: str,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Decode and validate an access token.

    Raises:
        TokenError: If the token is expired, malformed or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            secret_key or settings.jwt_secret_key,
            algorithms=[algorithm or settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Invalid token") from e

    if payload.get("type") != "access" or "user_id" not in payload:
        raise TokenError("Invalid token type")
    return payload


# ==================== Opaque tokens ==================== #

def generate_invitation_token() -> str:
    """Random URL-safe token mailed to invited users."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """Tokens are stored as sha256 digests, never in clear."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def hash_ip_address(ip_address: str) -> str:
    """Stable one-way digest of a client IP for view de-duplication."""
    return hashlib.sha256(ip_address.encode("utf-8")).hexdigest()


# ==================== Audit logging ==================== #

class AuditAction(str, Enum):
    """Audit log action types."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    PUBLISH = "PUBLISH"
    UNPUBLISH = "UNPUBLISH"
    STATUS_CHANGE = "STATUS_CHANGE"
    ARCHIVE = "ARCHIVE"
    RESTORE = "RESTORE"
    EMAIL = "EMAIL"
    ROLE_CHANGE = "ROLE_CHANGE"
    PERMISSION_CHANGE = "PERMISSION_CHANGE"
    ACTIVATE = "ACTIVATE"
    DEACTIVATE = "DEACTIVATE"
    INVITE = "INVITE"
    LOGIN = "LOGIN"
    VERIFY_EMAIL = "VERIFY_EMAIL"
    PASSWORD_RESET = "PASSWORD_RESET"


class ResourceType(str, Enum):
    """Resource types for audit logging."""
    USER = "USER"
    JOB = "JOB"
    INDUSTRY = "INDUSTRY"
    APPLICATION = "APPLICATION"
    EMAIL_TEMPLATE = "EMAIL_TEMPLATE"


# PII fields that should be masked in logs
PII_FIELDS: Set[str] = {
    "email", "phone", "contact_number", "address",
    "first_name", "last_name", "full_name", "name",
    "salary", "salary_min", "salary_max",
}


def mask_pii(data: Any, depth: int = 0) -> Any:
    """
    Recursively mask PII fields in data structures.

    Args:
        data: Data to mask (dict, list, or primitive)
        depth: Current recursion depth (max 10)

    Returns:
        Data with PII fields masked
    """
    if depth > 10:
        return "[MAX_DEPTH]"

    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if str(key).lower() in PII_FIELDS:
                if isinstance(value, str) and len(value) > 0:
                    masked[key] = f"{value[0]}***[{len(value)}]"
                else:
                    masked[key] = "[MASKED]"
            else:
                masked[key] = mask_pii(value, depth + 1)
        return masked
    elif isinstance(data, list):
        return [mask_pii(item, depth + 1) for item in data[:5]]
    else:
        return data


def log_audit_event(
    action: AuditAction,
    resource_type: ResourceType,
    resource_id: Optional[Any] = None,
    user_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    contains_pii: bool = False,
) -> Dict[str, Any]:
    """
    Emit a structured audit event on the security.audit logger.

    Returns the event so callers and tests can inspect what was written.
    """
    event = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": "AUDIT",
        "action": action.value,
        "resource_type": resource_type.value,
        "resource_id": str(resource_id) if resource_id is not None else None,
        "user_id": user_id,
        "contains_pii": contains_pii,
        "details": mask_pii(details) if details and contains_pii else details,
    }
    logger.info(json.dumps(event, default=str))
    return event
