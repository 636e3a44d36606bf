"""
Seed the role catalogue, default industries, email templates and the super-admin account.

Idempotent: existing rows are left alone. Run with ``python -m database.seed``.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.permissions import RoleName
from core.security import hash_password
from api.services.email_templates import ensure_default_templates
from database.engine import AsyncSessionLocal, init_db, close_db
from database.models.jobs import Industry
from database.models.users import Role, User, UserRole

logger = logging.getLogger(__name__)

ROLE_DESCRIPTIONS = {
    RoleName.ADMIN: "Administrator with full access",
    RoleName.STAFF: "Staff member with limited admin access",
    RoleName.USER: "Default user role",
}

DEFAULT_INDUSTRIES = [
    ("Technology", "Software, IT, and tech-related positions"),
    ("Healthcare", "Medical, nursing, and health services"),
    ("Finance", "Banking, accounting, and financial services"),
    ("Education", "Teaching, training, and academic roles"),
    ("Manufacturing", "Production, assembly, and industrial jobs"),
    ("Retail", "Sales, customer service, and store operations"),
    ("Marketing", "Advertising, digital marketing, and brand management"),
    ("Design", "Graphic design, UX/UI, and creative roles"),
    ("Engineering", "Civil, mechanical, electrical engineering"),
    ("Human Resources", "HR management, recruiting, and talent acquisition"),
    ("Sales", "Business development and sales positions"),
    ("Customer Service", "Support, help desk, and customer relations"),
    ("Other", "Other industries not listed above"),
]


async def seed_roles(session: AsyncSession) -> dict[RoleName, Role]:
    existing = {role.name: role for role in (await session.execute(select(Role))).scalars().all()}
    for name, description in ROLE_DESCRIPTIONS.items():
        if name not in existing:
            role = Role(name=name, description=description)
            session.add(role)
            existing[name] = role
    await session.flush()
    return existing


async def seed_industries(session: AsyncSession) -> int:
    names = set((await session.execute(select(Industry.name))).scalars().all())
    created = 0
    for name, description in DEFAULT_INDUSTRIES:
        if name not in names:
            session.add(Industry(name=name, description=description, is_active=True))
            created += 1
    await session.flush()
    return created


async def seed_super_admin(
    session: AsyncSession,
    admin_role: Role,
    password: Optional[str] = None,
) -> Optional[User]:
    """
    Create the super-admin account if missing.

    Without a configured password the account is skipped; it cannot log in
    without one.
    """
    email = settings.super_admin_email.strip().lower()
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is not None:
        return user

    password = password or settings.super_admin_password
    if not password:
        logger.warning("SUPER_ADMIN_PASSWORD is not set, skipping super admin account")
        return None

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name="Super",
        last_name="Admin",
        is_active=True,
        email_verified=True,
        roles=[UserRole(role=admin_role, permission_level=None)],
    )
    session.add(user)
    await session.flush()
    return user


async def seed(with_industries: bool = True) -> None:
    await init_db()
    async with AsyncSessionLocal() as session:
        roles = await seed_roles(session)
        logger.info(f"Roles ready: {', '.join(r.value for r in roles)}")

        if with_industries:
            created = await seed_industries(session)
            logger.info(f"Industries created: {created}")

        admin = await seed_super_admin(session, roles[RoleName.ADMIN])
        if admin:
            logger.info(f"Super admin ready: {admin.email}")

        templates = await ensure_default_templates(session)
        logger.info(f"Email templates created: {templates}")

        await session.commit()


async def main() -> None:
    try:
        await seed()
    finally:
        await close_db()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    asyncio.run(main())
