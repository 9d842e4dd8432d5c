import asyncio
import logging

from sqlalchemy import select

from app.core.roles import UserRole
from app.core.security import get_password_hash
from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.models.user import User

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """
    Ensure the configured administrator exists and is verified.
    """
    email = (settings.seed_admin_email or "").strip().lower()
    if not email or not settings.seed_admin_password:
        logger.info("Admin seeding skipped: SEED_ADMIN_EMAIL/SEED_ADMIN_PASSWORD not set")
        return

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is None:
            session.add(
                User(
                    email=email,
                    hashed_password=get_password_hash(settings.seed_admin_password),
                    first_name=settings.seed_admin_first_name,
                    last_name=settings.seed_admin_last_name,
                    role=UserRole.ADMIN.value,
                    email_verified=True,
                    token_version=0,
                )
            )
            await session.commit()
            logger.info("Admin user %s created", email)
        elif user.role != UserRole.ADMIN.value or not user.email_verified:
            user.role = UserRole.ADMIN.value
            user.email_verified = True
            session.add(user)
            await session.commit()
            logger.info("Existing user %s promoted to admin", email)
        else:
            logger.info("Admin user already exists")


if __name__ == "__main__":
    asyncio.run(init_db())
