"""
Database bootstrap.

Creates the schema and the initial admin account:

    python -m jewelry_shop.bootstrap
"""

import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_shop.core.config import settings
from jewelry_shop.core.database import async_session_maker, close_db, init_db
from jewelry_shop.models.customer import Customer, Role
from jewelry_shop.modules.auth.service import AuthService


async def ensure_admin(
    db: AsyncSession,
    email: str | None = None,
    password: str | None = None,
) -> Customer | None:
    """
    Create the admin account unless one with that email exists.

    Returns:
        The new admin, or None if nothing was created
    """
    email = email or settings.admin_email
    password = password or settings.admin_password

    if not password:
        logger.warning("ADMIN_PASSWORD is not set, skipping admin account")
        return None

    auth = AuthService(db)
    if await auth.get_customer_by_email(email):
        logger.info(f"Admin account {email} already exists")
        return None

    return await auth.create_customer(
        first_name=settings.admin_first_name,
        last_name=settings.admin_last_name,
        email=email,
        password=password,
        role=Role.ADMIN,
    )


async def bootstrap() -> None:
    """Create tables and seed the admin account."""
    await init_db()
    logger.info("Database schema ready")

    async with async_session_maker() as session:
        await ensure_admin(session)
        await session.commit()

    await close_db()


def main() -> None:
    asyncio.run(bootstrap())


if __name__ == "__main__":
    main()
