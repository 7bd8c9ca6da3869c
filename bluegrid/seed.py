"""Seed script: creates the first panchayat officer.

Officers cannot sign up or be created through the API, so the first one
is bootstrapped here from the environment (or .env).

Usage:
    SEED_OFFICER_EMAIL=... SEED_OFFICER_PASSWORD=... python -m bluegrid.seed

Environment:
    SEED_OFFICER_EMAIL: login email (required)
    SEED_OFFICER_PASSWORD: login password, at least 6 characters (required)
    SEED_OFFICER_NAME: display name (default "Panchayat Officer")
"""

import asyncio
import logging

from pydantic_settings import BaseSettings
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.config import settings
from bluegrid.database import Base, async_session, engine
from bluegrid.models import User
from bluegrid.models.enums import Role
from bluegrid.repositories.user_repository import user_repository
from bluegrid.utils.password import hash_password

logger = logging.getLogger(__name__)


class SeedSettings(BaseSettings):
    SEED_OFFICER_EMAIL: str = ""
    SEED_OFFICER_PASSWORD: str = ""
    SEED_OFFICER_NAME: str = "Panchayat Officer"

    model_config = {**settings.model_config}


async def seed_officer(db: AsyncSession, email: str, password: str, full_name: str) -> User | None:
    """Create the officer unless one already exists.

    Returns:
        User | None: The new officer, or None when skipped
    """
    if await user_repository.list_by_role(db, Role.PANCHAYAT_OFFICER):
        logger.info("An officer already exists. Skipping.")
        return None
    if await user_repository.get_by_email(db, email) is not None:
        logger.warning("%s is already registered with another role. Skipping.", email)
        return None

    officer = await user_repository.create(db, {
        "email": email.strip().lower(),
        "password_hash": hash_password(password),
        "email_verified": True,
        "full_name": full_name,
        "role": Role.PANCHAYAT_OFFICER,
    })
    return officer


async def seed() -> None:
    """Create tables if missing, then the first officer. Idempotent."""
    config = SeedSettings()
    if not config.SEED_OFFICER_EMAIL or len(config.SEED_OFFICER_PASSWORD) < 6:
        raise SystemExit("SEED_OFFICER_EMAIL and SEED_OFFICER_PASSWORD (6+ chars) are required")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as db:
        officer = await seed_officer(
            db, config.SEED_OFFICER_EMAIL, config.SEED_OFFICER_PASSWORD, config.SEED_OFFICER_NAME
        )
        await db.commit()
        if officer is not None:
            logger.info("Seeded officer %s (%s)", officer.email, officer.id)


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    asyncio.run(seed())
