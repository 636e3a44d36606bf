"""
Authentication endpoints.

Provides:
- Candidate signup and email/password login
- Email verification, password reset and magic-link sign-in
- The current account's profile, password and resume
- Admin invitations and invitation acceptance
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import require_active_user
from api.schemas.auth import (
    AcceptInvitationRequest,
    ChangePasswordRequest,
    EmailRequest,
    InviteUserRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    TokenRequest,
    UpdateProfileRequest,
)
from api.services import auth as auth_service
from api.services.notifications import (
    send_invitation_email,
    send_magic_link_email,
    send_password_reset_email,
    send_verification_email,
)
from core.middleware.authorization import require_permission
from core.permissions import ActorContext, Permission
from database.engine import get_db
from database.models.users import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


def _raise_for_failure(result: Dict[str, Any]) -> None:
    if result.get("success"):
        return
    if result.get("rate_limited"):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=result.get("error"),
            headers={"Retry-After": str(result.get("cooldown", 0))},
        )
    raise HTTPException(status_code=400, detail=result.get("error"))


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    summary="Sign Up",
    description="Register a candidate account, receive an access token and get a verification email.",
)
async def signup(
    request: SignupRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    result = await auth_service.signup(db, request.model_dump())
    _raise_for_failure(result)

    token = result.pop("verification_token")
    background_tasks.add_task(send_verification_email, result["user"]["email"], token)
    return result


@router.post("/login", summary="Log In")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange email and password for an access token."""
    return await auth_service.login(db, request.email, request.password)


@router.post("/verify-email", summary="Verify Email")
async def verify_email(request: TokenRequest, db: AsyncSession = Depends(get_db)):
    """Confirm an address from the link mailed at signup."""
    result = await auth_service.verify_email(db, request.token)
    _raise_for_failure(result)
    return result


@router.post(
    "/resend-verification",
    summary="Resend Verification Email",
    description="Mail a new verification link. The answer does not reveal whether the address is registered.",
)
async def resend_verification(
    request: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    result = await auth_service.resend_verification(db, request.email)
    _raise_for_failure(result)

    token = result.pop("token")
    if token:
        background_tasks.add_task(send_verification_email, request.email.lower(), token)
    return result


@router.post(
    "/forgot-password",
    summary="Forgot Password",
    description="Mail a password reset link. The answer does not reveal whether the address is registered.",
)
async def forgot_password(
    request: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    result = await auth_service.forgot_password(db, request.email)
    _raise_for_failure(result)

    token = result.pop("token")
    if token:
        background_tasks.add_task(send_password_reset_email, request.email.lower(), token)
    return result


@router.post("/reset-password", summary="Reset Password")
async def reset_password(request: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    result = await auth_service.reset_password(db, request.token, request.password)
    _raise_for_failure(result)
    return result


@router.post("/magic-link/request", summary="Request Magic Link")
async def request_magic_link(
    request: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    """Mail a one-time sign-in link to an existing account."""
    result = await auth_service.request_magic_link(db, request.email)
    _raise_for_failure(result)

    token = result.pop("token")
    background_tasks.add_task(send_magic_link_email, request.email.lower(), token)
    return result


@router.post("/magic-link/verify", summary="Sign In With Magic Link")
async def verify_magic_link(request: TokenRequest, db: AsyncSession = Depends(get_db)):
    result = await auth_service.verify_magic_link(db, request.token)
    _raise_for_failure(result)
    return result


@router.get(
    "/me",
    summary="Get Current User",
    description="Current account with roles, effective permission level and granted permissions.",
)
async def get_me(current_user: User = Depends(require_active_user)):
    return auth_service.me(current_user)


@router.patch("/me", summary="Update Profile")
async def update_me(
    request: UpdateProfileRequest,
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    updates = request.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    return await auth_service.update_profile(db, current_user, updates)


@router.post("/me/change-password", summary="Change Password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    result = await auth_service.change_password(
        db, current_user, request.current_password, request.new_password
    )
    _raise_for_failure(result)
    return result


@router.post(
    "/me/resume",
    summary="Upload Profile Resume",
    description="Store a PDF resume on the profile, replacing the previous one.",
)
async def upload_resume(
    resume: UploadFile = File(...),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    data = await resume.read()
    result = await auth_service.upload_profile_resume(
        db, current_user, resume.filename, resume.content_type, data
    )
    _raise_for_failure(result)
    return result


@router.delete("/me/resume", summary="Delete Profile Resume")
async def delete_resume(
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    result = await auth_service.delete_profile_resume(db, current_user)
    _raise_for_failure(result)
    return result


@router.post(
    "/invite",
    status_code=status.HTTP_201_CREATED,
    summary="Invite User",
    description="Create a pending account and email an invitation link. Requires users:invite.",
)
async def invite(
    request: InviteUserRequest,
    background_tasks: BackgroundTasks,
    actor: ActorContext = Depends(require_permission(Permission.USERS_INVITE)),
    db: AsyncSession = Depends(get_db),
):
    result = await auth_service.invite_user(
        db, actor, request.email, request.role, request.permission_level
    )
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))

    token = result.pop("token")
    background_tasks.add_task(
        send_invitation_email, request.email, request.role.value, token, actor.email
    )
    result["message"] = "Invitation sent"
    return result


@router.post("/accept-invitation", summary="Accept Invitation")
async def accept_invitation(request: AcceptInvitationRequest, db: AsyncSession = Depends(get_db)):
    """Complete onboarding from an invitation link."""
    result = await auth_service.accept_invitation(db, request.model_dump())
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error"))
    return result
