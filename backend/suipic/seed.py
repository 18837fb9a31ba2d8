"""
Create the first admin account.

Usage:
    python -m suipic.seed

Runs once per deployment; does nothing when an admin already exists.
"""
import asyncio
import logging
import sys
from typing import Optional, Tuple
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from suipic.core.config import settings
from suipic.core.database import AsyncSessionLocal, close_db
from suipic.core.errors import Conflict, SuipicError
from suipic.models import User, UserRole
from suipic.models.user import PENDING_IDENTITY_PREFIX

logger = logging.getLogger(__name__)


async def seed_admin(
    db: AsyncSession,
    email: Optional[str] = None,
    identity_key: Optional[str] = None,
) -> Tuple[User, bool]:
    """
    Ensure an admin exists.

    Returns:
        Tuple of (admin user, whether it was created now)
    """
    email = email or settings.ADMIN_EMAIL
    identity_key = identity_key or settings.ADMIN_IDENTITY_KEY or f"{PENDING_IDENTITY_PREFIX}{uuid4()}"

    result = await db.execute(select(User).where(User.role == UserRole.ADMIN).limit(1))
    existing_admin = result.scalar_one_or_none()
    if existing_admin is not None:
        logger.info(f"Admin {existing_admin.email} already exists, skipping seed")
        return existing_admin, False

    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    if result.scalar_one_or_none() is not None:
        raise Conflict(f"{email} already belongs to a non-admin account")

    admin = User(
        identity_key=identity_key,
        email=email,
        first_name="System",
        last_name="Administrator",
        role=UserRole.ADMIN,
    )
    db.add(admin)
    await db.commit()
    logger.info(f"Created admin {admin.email} ({admin.id}); identity key {admin.identity_key}")
    return admin, True


async def main() -> int:
    try:
        async with AsyncSessionLocal() as db:
            admin, created = await seed_admin(db)
    except SuipicError as e:
        logger.error(f"Seeding failed: {e.message}")
        return 1
    finally:
        await close_db()

    if created and admin.is_pending:
        logger.info("The admin account is linked when that email first signs in through /auth/sync")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    sys.exit(asyncio.run(main()))
