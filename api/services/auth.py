"""Account service: signup, login, profile, one-time email links and invitation onboarding."""

from datetime import timedelta
from typing import Any, Dict, Optional
import logging
import math

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.authority import is_pending_invitation
from core.config import settings
from core.middleware.authentication import (
    InvalidCredentialsError,
    UserInactiveError,
    build_actor,
    load_user,
)
from core.permissions import (
    ActorContext,
    PermissionLevel,
    RoleName,
    granted_permissions,
)
from core.security import (
    AuditAction,
    ResourceType,
    create_access_token,
    generate_invitation_token,
    hash_password,
    hash_token,
    log_audit_event,
    verify_password,
)
from core.storage.resumes import build_profile_resume_key, get_resume_storage
from core.utils.datetime import ensure_aware, is_past, now
from core.utils.validators import validate_resume
from database.models.users import EmailToken, EmailTokenPurpose, User
from api.services.users import (
    assign_role,
    get_role_by_name,
    issue_invitation,
    serialize_user,
    target_from_user,
)


logger = logging.getLogger(__name__)


def _token_response(user: User) -> Dict[str, Any]:
    token = create_access_token(user.id, user.email, user.role_names)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": serialize_user(user),
    }


async def _find_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User.id).where(User.email == email.strip().lower()))
    user_id = result.scalar_one_or_none()
    if user_id is None:
        return None
    return await load_user(db, user_id)


async def signup(db: AsyncSession, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Register a candidate account with the user role.

    Returns:
        Token payload with the clear-text verification link token, or an
        error dict when the email is taken
    """
    email = data["email"].strip().lower()
    if await _find_by_email(db, email):
        return {
            "success": False,
            "error": "An account with this email address already exists",
        }

    role = await get_role_by_name(db, RoleName.USER)
    if role is None:
        logger.error("Role catalogue is not seeded; cannot register users")
        return {"success": False, "error": "Registration is not available"}

    user = User(
        email=email,
        password_hash=hash_password(data["password"]),
        first_name=data["first_name"].strip(),
        last_name=data["last_name"].strip(),
        contact_number=data.get("contact_number"),
        address=data.get("address"),
        is_active=True,
        email_verified=False,
        roles=[],
    )
    db.add(user)
    await assign_role(db, user, role)
    verification_token = await issue_email_token(db, email, EmailTokenPurpose.VERIFICATION)
    await db.commit()

    logger.info(f"New candidate account {user.id} registered")
    user = await load_user(db, user.id)
    return {
        "success": True,
        "verification_token": verification_token,
        **_token_response(user),
    }


async def login(db: AsyncSession, email: str, password: str) -> Dict[str, Any]:
    """
    Authenticate with email and password.

    Pending invitations have no password and never match.

    Raises:
        InvalidCredentialsError: Unknown email or wrong password
        UserInactiveError: The account has been deactivated
    """
    user = await _find_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentialsError("Invalid email or password")
    if not user.is_active:
        raise UserInactiveError(
            "Your account has been deactivated. Please contact support for assistance."
        )

    user.last_login_at = now()
    await db.commit()

    log_audit_event(
        action=AuditAction.LOGIN,
        resource_type=ResourceType.USER,
        resource_id=user.id,
        user_id=user.id,
    )
    user = await load_user(db, user.id)
    return _token_response(user)


def me(user: User) -> Dict[str, Any]:
    """Current account with the permissions its roles grant."""
    actor = build_actor(user)
    data = serialize_user(user)
    data["permissions"] = [p.value for p in granted_permissions(actor)]
    return data


async def update_profile(db: AsyncSession, user: User, updates: Dict[str, Any]) -> Dict[str, Any]:
    allowed_fields = ["first_name", "last_name", "contact_number", "address"]
    changed = []
    for field in allowed_fields:
        if field in updates and updates[field] is not None:
            value = updates[field].strip() if isinstance(updates[field], str) else updates[field]
            setattr(user, field, value)
            changed.append(field)

    await db.commit()
    user = await load_user(db, user.id)
    return {"success": True, "updated_fields": changed, "user": me(user)}


async def change_password(
    db: AsyncSession,
    user: User,
    current_password: str,
    new_password: str,
) -> Dict[str, Any]:
    if not verify_password(current_password, user.password_hash):
        return {"success": False, "error": "Current password is incorrect"}
    if current_password == new_password:
        return {
            "success": False,
            "error": "New password must be different from current password",
        }

    user.password_hash = hash_password(new_password)
    await db.commit()
    logger.info(f"User {user.id} changed their password")
    return {"success": True, "message": "Password updated successfully"}


async def invite_user(
    db: AsyncSession,
    actor: ActorContext,
    email: str,
    role_name: RoleName,
    permission_level: Optional[PermissionLevel] = None,
) -> Dict[str, Any]:
    """
    Create a pending account and its invitation token.

    Only the super admin may invite another admin.

    Returns:
        Dict with the clear-text token for the invitation email, or an
        error dict
    """
    email = email.strip().lower()
    if role_name == RoleName.ADMIN and not actor.is_super_admin:
        return {"success": False, "error": "Only the super admin can invite administrators"}
    if await _find_by_email(db, email):
        return {"success": False, "error": "A user with this email already exists"}

    role = await get_role_by_name(db, role_name)
    if role is None:
        return {"success": False, "error": "Invalid role"}

    user = User(email=email, is_active=True, email_verified=False, roles=[])
    token = issue_invitation(user)
    db.add(user)
    await assign_role(db, user, role, permission_level)
    await db.commit()

    log_audit_event(
        action=AuditAction.INVITE,
        resource_type=ResourceType.USER,
        resource_id=user.id,
        user_id=actor.user_id,
        details={"email": email, "role": role_name.value},
        contains_pii=True,
    )

    user = await load_user(db, user.id)
    return {
        "success": True,
        "token": token,
        "user": serialize_user(user, actor),
    }


async def accept_invitation(db: AsyncSession, data: Dict[str, Any]) -> Dict[str, Any]:
    """Complete onboarding: set names and password, consume the token."""
    result = await db.execute(
        select(User.id).where(User.invitation_token_hash == hash_token(data["token"]))
    )
    user_id = result.scalar_one_or_none()
    if user_id is None:
        return {"success": False, "error": "This invitation link is invalid or has already been used"}

    user = await load_user(db, user_id)
    if is_past(user.invitation_expires_at):
        return {"success": False, "error": "This invitation link has expired"}

    user.first_name = data["first_name"].strip()
    user.last_name = data["last_name"].strip()
    user.password_hash = hash_password(data["password"])
    user.email_verified = True
    user.invitation_token_hash = None
    user.invitation_expires_at = None
    await db.commit()

    logger.info(f"User {user.id} accepted their invitation")
    user = await load_user(db, user.id)
    return {"success": True, **_token_response(user)}


# ==================== One-time email links ==================== #

_LINK_LIFETIMES = {
    EmailTokenPurpose.VERIFICATION: lambda: timedelta(hours=settings.verification_expire_hours),
    EmailTokenPurpose.PASSWORD_RESET: lambda: timedelta(minutes=settings.password_reset_expire_minutes),
    EmailTokenPurpose.MAGIC_LINK: lambda: timedelta(minutes=settings.magic_link_expire_minutes),
}

_LINK_NAMES = {
    EmailTokenPurpose.VERIFICATION: ("verification link", "verification email"),
    EmailTokenPurpose.PASSWORD_RESET: ("reset link", "reset email"),
    EmailTokenPurpose.MAGIC_LINK: ("sign-in link", "sign-in link"),
}


async def cooldown_remaining(db: AsyncSession, email: str, purpose: EmailTokenPurpose) -> int:
    """Seconds until another link of this kind may be mailed to the address."""
    result = await db.execute(
        select(EmailToken.created_at)
        .where(EmailToken.email == email, EmailToken.purpose == purpose)
        .order_by(EmailToken.created_at.desc())
        .limit(1)
    )
    last_sent = result.scalar_one_or_none()
    if last_sent is None:
        return 0
    elapsed = (now() - ensure_aware(last_sent)).total_seconds()
    return max(0, math.ceil(settings.email_cooldown_seconds - elapsed))


def _cooldown_error(purpose: EmailTokenPurpose, remaining: int) -> Dict[str, Any]:
    return {
        "success": False,
        "rate_limited": True,
        "cooldown": remaining,
        "error": (
            f"Please wait {remaining} seconds before requesting another "
            f"{_LINK_NAMES[purpose][1]}."
        ),
    }


async def issue_email_token(db: AsyncSession, email: str, purpose: EmailTokenPurpose) -> str:
    """
    Replace any outstanding link of this kind for the address. Does not
    commit.

    Returns:
        The clear-text token for the email; only its hash is stored
    """
    await db.execute(
        delete(EmailToken).where(EmailToken.email == email, EmailToken.purpose == purpose)
    )
    token = generate_invitation_token()
    db.add(EmailToken(
        email=email,
        purpose=purpose,
        token_hash=hash_token(token),
        expires_at=now() + _LINK_LIFETIMES[purpose](),
        created_at=now(),
    ))
    await db.flush()
    return token


async def _consume_email_token(
    db: AsyncSession,
    token: str,
    purpose: EmailTokenPurpose,
) -> tuple[Optional[str], Optional[str]]:
    """
    Use up a mailed link.

    Returns:
        (email, None) when the link is good, otherwise (None, error)
    """
    name = _LINK_NAMES[purpose][0]
    result = await db.execute(
        select(EmailToken).where(
            EmailToken.token_hash == hash_token(token),
            EmailToken.purpose == purpose,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        return None, (
            f"This {name} is invalid or has already been used. Please request a new one."
        )

    email = row.email
    expired = is_past(row.expires_at)
    await db.delete(row)
    await db.flush()
    if expired:
        await db.commit()
        return None, f"This {name} has expired. Please request a new one."
    return email, None


async def verify_email(db: AsyncSession, token: str) -> Dict[str, Any]:
    email, error = await _consume_email_token(db, token, EmailTokenPurpose.VERIFICATION)
    if error:
        return {"success": False, "error": error}

    user = await _find_by_email(db, email)
    if user is None:
        await db.commit()
        return {"success": False, "error": "This account no longer exists"}

    user.email_verified = True
    await db.commit()

    log_audit_event(
        action=AuditAction.VERIFY_EMAIL,
        resource_type=ResourceType.USER,
        resource_id=user.id,
        user_id=user.id,
    )
    return {
        "success": True,
        "message": "Your email has been verified successfully. You can now sign in to your account.",
    }


async def _issue_quietly(
    db: AsyncSession,
    email: str,
    purpose: EmailTokenPurpose,
    eligible: bool,
) -> Optional[str]:
    """
    Record a link for the address either way, so the cooldown behaves the
    same for every address; hand back the token only when it should be mailed.
    """
    token = await issue_email_token(db, email, purpose)
    await db.commit()
    return token if eligible else None


async def resend_verification(db: AsyncSession, email: str) -> Dict[str, Any]:
    """
    Mail a fresh verification link.

    Unknown and already verified addresses get the same answer as real
    ones, without a link.

    Returns:
        Dict with the message and, when a link should be mailed, the
        token; or a rate-limit error dict
    """
    email = email.strip().lower()
    remaining = await cooldown_remaining(db, email, EmailTokenPurpose.VERIFICATION)
    if remaining > 0:
        return _cooldown_error(EmailTokenPurpose.VERIFICATION, remaining)

    user = await _find_by_email(db, email)
    eligible = (
        user is not None
        and not user.email_verified
        and not is_pending_invitation(target_from_user(user))
    )
    return {
        "success": True,
        "message": "We have sent a verification link to your email address.",
        "cooldown": settings.email_cooldown_seconds,
        "token": await _issue_quietly(db, email, EmailTokenPurpose.VERIFICATION, eligible),
    }


async def forgot_password(db: AsyncSession, email: str) -> Dict[str, Any]:
    """
    Mail a password reset link.

    Unknown, inactive and never-onboarded addresses get the same answer as
    real ones, without a link.
    """
    email = email.strip().lower()
    remaining = await cooldown_remaining(db, email, EmailTokenPurpose.PASSWORD_RESET)
    if remaining > 0:
        return _cooldown_error(EmailTokenPurpose.PASSWORD_RESET, remaining)

    user = await _find_by_email(db, email)
    eligible = (
        user is not None
        and user.is_active
        and not is_pending_invitation(target_from_user(user))
    )
    token = await _issue_quietly(db, email, EmailTokenPurpose.PASSWORD_RESET, eligible)
    if token:
        logger.info(f"Password reset requested for user {user.id}")
    return {
        "success": True,
        "message": "If an account exists for this email, we have sent password reset instructions.",
        "cooldown": settings.email_cooldown_seconds,
        "token": token,
    }


async def reset_password(db: AsyncSession, token: str, password: str) -> Dict[str, Any]:
    email, error = await _consume_email_token(db, token, EmailTokenPurpose.PASSWORD_RESET)
    if error:
        return {"success": False, "error": error}

    user = await _find_by_email(db, email)
    if user is None:
        await db.commit()
        return {"success": False, "error": "This account no longer exists"}

    user.password_hash = hash_password(password)
    await db.commit()

    log_audit_event(
        action=AuditAction.PASSWORD_RESET,
        resource_type=ResourceType.USER,
        resource_id=user.id,
        user_id=user.id,
    )
    return {
        "success": True,
        "message": "Your password has been reset successfully. You can now sign in with your new password.",
    }


async def request_magic_link(db: AsyncSession, email: str) -> Dict[str, Any]:
    """
    Mail a one-time sign-in link to an existing account.

    Raises:
        UserInactiveError: The account has been deactivated
    """
    email = email.strip().lower()
    remaining = await cooldown_remaining(db, email, EmailTokenPurpose.MAGIC_LINK)
    if remaining > 0:
        return _cooldown_error(EmailTokenPurpose.MAGIC_LINK, remaining)

    user = await _find_by_email(db, email)
    if user is None:
        return {"success": False, "error": "No account found. Please sign up first."}
    if is_pending_invitation(target_from_user(user)):
        return {
            "success": False,
            "error": "This account has not been set up yet. Please use your invitation link.",
        }
    if not user.is_active:
        raise UserInactiveError(
            "Your account has been deactivated. Please contact support for assistance."
        )

    token = await issue_email_token(db, email, EmailTokenPurpose.MAGIC_LINK)
    await db.commit()
    return {
        "success": True,
        "message": "We have sent a sign-in link to your email address.",
        "cooldown": settings.email_cooldown_seconds,
        "token": token,
    }


async def verify_magic_link(db: AsyncSession, token: str) -> Dict[str, Any]:
    """
    Sign in from a mailed link. Following the link proves the address, so
    the email is marked verified.

    Raises:
        UserInactiveError: The account was deactivated after the link was sent
    """
    email, error = await _consume_email_token(db, token, EmailTokenPurpose.MAGIC_LINK)
    if error:
        return {"success": False, "error": error}

    user = await _find_by_email(db, email)
    if user is None:
        await db.commit()
        return {"success": False, "error": "This account no longer exists"}
    if not user.is_active:
        await db.commit()
        raise UserInactiveError(
            "Your account has been deactivated. Please contact support for assistance."
        )

    user.email_verified = True
    user.last_login_at = now()
    await db.commit()

    log_audit_event(
        action=AuditAction.LOGIN,
        resource_type=ResourceType.USER,
        resource_id=user.id,
        user_id=user.id,
        details={"method": "magic_link"},
    )
    user = await load_user(db, user.id)
    return {"success": True, **_token_response(user)}


# ==================== Profile resume ==================== #

async def _remove_stored_resume(resume_url: str, user_id: int) -> None:
    storage = get_resume_storage()
    key = storage.key_from_url(resume_url)
    if not key:
        return
    try:
        await storage.delete(key)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not delete profile resume for user {user_id}: {e}")


async def upload_profile_resume(
    db: AsyncSession,
    user: User,
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
) -> Dict[str, Any]:
    """Store a PDF resume on the profile, replacing any previous one."""
    ok, error = validate_resume(filename, content_type, data, settings.resume_max_size_bytes)
    if not ok:
        return {"success": False, "error": error}

    storage = get_resume_storage()
    key = build_profile_resume_key(user.id, filename)
    resume_url = await storage.upload(data, key, content_type="application/pdf")

    previous = user.resume_url
    user.resume_url = resume_url
    user.resume_file_name = filename
    user.resume_uploaded_at = now()
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        await _remove_stored_resume(resume_url, user.id)
        raise

    if previous and previous != resume_url:
        await _remove_stored_resume(previous, user.id)

    user = await load_user(db, user.id)
    return {"success": True, "message": "Resume uploaded successfully", "user": me(user)}


async def delete_profile_resume(db: AsyncSession, user: User) -> Dict[str, Any]:
    if not user.resume_url:
        return {"success": False, "error": "No resume to delete"}

    previous = user.resume_url
    user.resume_url = None
    user.resume_file_name = None
    user.resume_uploaded_at = None
    await db.commit()
    await _remove_stored_resume(previous, user.id)

    user = await load_user(db, user.id)
    return {"success": True, "message": "Resume deleted successfully", "user": me(user)}
