"""
Seed script to create the first active Admin account.

Run once after the tables exist, with env set:
  SEED_ADMIN_EMAIL=admin@school.example
  SEED_ADMIN_PASSWORD=YourSecurePassword
  SEED_ADMIN_USERNAME=admin   (optional)

  python -m lms.db.seed_admin

Nothing is created when an active Admin already exists.
"""
import asyncio

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

import lms.core.models  # noqa: F401
from lms.auth.models import User
from lms.auth.security import hash_password
from lms.core.config import settings
from lms.core.enums import Sex, UserRole, UserStatus
from lms.core.ids import generate_public_user_id
from lms.core.logging import setup_logging
from lms.db.session import AsyncSessionLocal

DEFAULT_ADMIN_FIRST_NAME = "System"
DEFAULT_ADMIN_LAST_NAME = "Admin"


async def seed_admin(db: AsyncSession) -> bool:
    """Returns True when an admin was created."""
    # 1. Skip when the school already has an active admin
    result = await db.execute(
        select(User.id).where(
            User.role == UserRole.ADMIN.value,
            User.status == UserStatus.ACTIVE.value,
        )
    )
    if result.first() is not None:
        logger.info("seed_admin.skipped reason=active_admin_exists")
        return False

    email = settings.seed_admin_email
    password = settings.seed_admin_password
    if not email or not password:
        logger.warning("seed_admin.skipped reason=missing SEED_ADMIN_EMAIL/SEED_ADMIN_PASSWORD")
        return False

    # 2. Reactivate an existing account with that email, otherwise create it
    user_result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    user = user_result.scalar_one_or_none()
    if user and user.role != UserRole.ADMIN.value:
        logger.error("seed_admin.failed email={} already belongs to a {}", email, user.role)
        return False

    if user:
        user.status = UserStatus.ACTIVE.value
        user.password_hash = hash_password(password)
        logger.info("seed_admin.reactivated email={}", email)
    else:
        db.add(
            User(
                user_id=await generate_public_user_id(db),
                username=settings.seed_admin_username,
                email=email.lower(),
                password_hash=hash_password(password),
                first_name=DEFAULT_ADMIN_FIRST_NAME,
                last_name=DEFAULT_ADMIN_LAST_NAME,
                phone_number="-",
                address="-",
                sex=Sex.OTHER.value,
                role=UserRole.ADMIN.value,
                status=UserStatus.ACTIVE.value,
            )
        )
        logger.info("seed_admin.created email={} username={}", email, settings.seed_admin_username)

    await db.commit()
    return True


async def main() -> None:
    setup_logging()
    async with AsyncSessionLocal() as db:
        try:
            await seed_admin(db)
        except Exception:
            await db.rollback()
            logger.exception("seed_admin.error")
            raise


if __name__ == "__main__":
    asyncio.run(main())
