import asyncio
import logging

from app.core.config import get_settings
from app.core.logging_config import setup_logging
from app.db.base import Base
from app.db.session import AsyncSessionLocal, async_engine
from app.models.user import UserRole
from app.repositories.async_user import async_user_repository

logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Crea las tablas que no existan (users, bookings)."""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    logger.info("Tablas creadas o ya existentes")


async def seed_first_admin() -> None:
    """Crea el primer administrador si FIRST_ADMIN_EMAIL está configurado."""
    settings = get_settings()
    if not settings.FIRST_ADMIN_EMAIL:
        logger.info("FIRST_ADMIN_EMAIL no configurado, se omite el administrador inicial")
        return

    async with AsyncSessionLocal() as db:
        existing = await async_user_repository.get_by_email(db, email=settings.FIRST_ADMIN_EMAIL)
        if existing:
            logger.info(f"El administrador {settings.FIRST_ADMIN_EMAIL} ya existe")
            return

        await async_user_repository.create(db, obj_in={
            "email": settings.FIRST_ADMIN_EMAIL,
            "name": settings.FIRST_ADMIN_NAME,
            "role": UserRole.ADMIN,
            "weekly_booking_limit": settings.DEFAULT_WEEKLY_BOOKING_LIMIT,
        })
        await db.commit()
        logger.info(f"Administrador inicial creado: {settings.FIRST_ADMIN_EMAIL}")


async def main() -> None:
    await create_tables()
    await seed_first_admin()
    await async_engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
    logger.info("Proceso de creación de tablas completado")
