"""Shared fixtures and utilities for tests."""

import os
import tempfile

# Settings are read at import time, so the environment is fixed before any
# application module is imported.
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-min-32-chars-long-for-security"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["SUPER_ADMIN_EMAIL"] = "root@example.com"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_STORAGE_DIR"] = tempfile.mkdtemp(prefix="careers-test-storage-")
os.environ["JSON_LOGS"] = "false"

from datetime import timedelta
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from api.main import app
from core.permissions import PermissionLevel, RoleName, normalize_permission_level
from core.security import create_access_token, hash_password
from core.utils.datetime import now
from database.engine import AsyncSessionLocal, close_db, drop_db, init_db
from database.models.jobs import Industry, Job, JobType, ShiftType, WorkType
from database.models.users import Role, User, UserRole
from database.seed import seed_roles

TEST_PASSWORD = "Password123"


@pytest_asyncio.fixture
async def database():
    """Fresh schema with the seeded role catalogue."""
    await init_db()
    async with AsyncSessionLocal() as session:
        await seed_roles(session)
        await session.commit()
    yield
    await drop_db()
    await close_db()


@pytest_asyncio.fixture
async def session(database):
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client(database):
    """HTTP client bound to the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def make_user(session):
    """Factory creating an account with a single role assignment."""

    async def _make(
        email: str,
        role: RoleName = RoleName.USER,
        permission_level: Optional[PermissionLevel] = None,
        first_name: Optional[str] = "Test",
        last_name: Optional[str] = "User",
        password: Optional[str] = TEST_PASSWORD,
        is_active: bool = True,
    ) -> User:
        role_row = (await session.execute(select(Role).where(Role.name == role))).scalar_one()
        user = User(
            email=email.lower(),
            password_hash=hash_password(password) if password else None,
            first_name=first_name,
            last_name=last_name,
            is_active=is_active,
            roles=[
                UserRole(
                    role_id=role_row.id,
                    permission_level=normalize_permission_level(role, permission_level),
                )
            ],
        )
        session.add(user)
        await session.commit()
        return user

    return _make


def auth_headers(user: User) -> dict:
    """Bearer header for a user. Roles in the token are informational only."""
    token = create_access_token(user.id, user.email, [])
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def super_admin(make_user):
    return await make_user("root@example.com", RoleName.ADMIN, first_name="Root", last_name="Admin")


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user("admin@example.com", RoleName.ADMIN, first_name="Ada", last_name="Admin")


@pytest_asyncio.fixture
async def staff_editor(make_user):
    return await make_user(
        "editor@example.com", RoleName.STAFF, PermissionLevel.CAN_EDIT,
        first_name="Eddie", last_name="Editor",
    )


@pytest_asyncio.fixture
async def staff_reader(make_user):
    return await make_user(
        "reader@example.com", RoleName.STAFF, PermissionLevel.CAN_READ,
        first_name="Rita", last_name="Reader",
    )


@pytest_asyncio.fixture
async def candidate(make_user):
    return await make_user("candidate@example.com", RoleName.USER, first_name="Casey", last_name="Candidate")


@pytest_asyncio.fixture
async def industry(session):
    industry = Industry(name="Technology", description="Software and IT", is_active=True)
    session.add(industry)
    await session.commit()
    return industry


@pytest.fixture
def make_job(session, industry):
    """Factory creating a job; published unless told otherwise."""
    counter = {"n": 0}

    async def _make(
        title: str = "Backend Engineer",
        is_published: bool = True,
        expired: bool = False,
        custom_application_fields: Optional[list] = None,
        industry_id: Optional[int] = None,
    ) -> Job:
        counter["n"] += 1
        job = Job(
            job_number=f"JN-{counter['n']:04d}",
            title=title,
            description=f"{title} description",
            industry_id=industry_id or industry.id,
            location="Manila",
            work_type=WorkType.REMOTE,
            job_type=JobType.FULL_TIME,
            shift_type=ShiftType.DAY,
            experience_min=1,
            experience_max=5,
            salary_min=Decimal("1000"),
            salary_max=Decimal("2000"),
            is_published=is_published,
            published_at=now() if is_published else None,
            expires_at=now() - timedelta(days=1) if expired else None,
            custom_application_fields=custom_application_fields or [],
        )
        session.add(job)
        await session.commit()
        return job

    return _make


@pytest.fixture
def minimal_pdf():
    """Fixture providing a minimal valid PDF."""
    return _create_minimal_pdf("Test PDF")


def _create_minimal_pdf(text: str) -> bytes:
    """Create a minimal valid PDF with embedded text."""
    pdf = (
        b"%PDF-1.4\n"
        b"1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj\n"
        b"2 0 obj<</Type/Pages/Kids[3 0 R]/Count 1>>endobj\n"
        b"3 0 obj<</Type/Page/Parent 2 0 R/MediaBox[0 0 612 792]/Contents 4 0 R>>endobj\n"
        b"4 0 obj<</Length 44>>stream\nBT /F1 12 Tf 100 700 Td ("
        + text.encode()
        + b") Tj ET\nendstream endobj\n"
        b"trailer<</Size 5/Root 1 0 R>>\n%%EOF"
    )
    return pdf


@pytest.fixture
def headers():
    """Callable building bearer headers for a user."""
    return auth_headers


@pytest.fixture
def apply(client, minimal_pdf):
    """Submit an application through the public endpoint."""

    async def _apply(
        job: Job,
        email: str = "applicant@example.com",
        first_name: str = "Alex",
        last_name: str = "Applicant",
        user: Optional[User] = None,
        custom_field_values: Optional[str] = None,
    ):
        data = {
            "job_number": job.job_number,
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "contact_number": "+63 917 123 4567",
            "address": "123 Main St, Manila",
        }
        if custom_field_values is not None:
            data["custom_field_values"] = custom_field_values
        return await client.post(
            "/api/v1/applications",
            data=data,
            files={"resume": ("resume.pdf", minimal_pdf, "application/pdf")},
            headers=auth_headers(user) if user else None,
        )

    return _apply
