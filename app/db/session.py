from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
import logging

from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Obtener la instancia de configuración
settings_instance = get_settings()

db_url = str(settings_instance.SQLALCHEMY_DATABASE_URI)

# Ocultar credenciales en el log
display_url = db_url
if '@' in display_url:
    scheme = display_url.split('://')[0]
    host_info = display_url.split('@')[-1]
    display_url = f"{scheme}://***@{host_info}"

logger.info(f"URL utilizada para crear el engine async: {display_url}")


def _engine_options(url: str) -> dict:
    """Opciones del engine según el driver (aiosqlite no admite pool_size)."""
    if url.startswith("sqlite"):
        return {"echo": False, "connect_args": {"check_same_thread": False}}
    return {
        "echo": False,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 280,
        "connect_args": {
            "server_settings": {
                "application_name": "gym_booking_api",
                "statement_timeout": "30000"
            }
        },
    }


async_engine = create_async_engine(db_url, **_engine_options(db_url))
logger.info("Async engine creado correctamente")

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
)


async def get_async_db():
    """
    Dependencia async para obtener sesión de base de datos.

    Uso en endpoints:
        @router.get("/endpoint")
        async def my_endpoint(db: AsyncSession = Depends(get_async_db)):
            result = await db.execute(select(Booking))
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Error SQLAlchemy en sesión async: {e}", exc_info=True)
            await session.rollback()
            raise
        except Exception as e:
            from fastapi import HTTPException
            if isinstance(e, HTTPException):
                raise
            logger.error(f"Error inesperado en get_async_db: {e}", exc_info=True)
            raise


@asynccontextmanager
async def get_async_db_for_jobs():
    """
    Context manager async para background jobs y scheduled tasks.

    SOLO para background jobs (APScheduler). Para endpoints FastAPI usar
    get_async_db() con Depends().

    Uso:
        async with get_async_db_for_jobs() as db:
            count = await async_booking_repository.mark_expired_as_completed(db, now=now)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Error SQLAlchemy en background job async DB: {e}", exc_info=True)
            await session.rollback()
            raise
        except Exception as e:
            logger.error(f"Error inesperado en background job async DB: {e}", exc_info=True)
            await session.rollback()
            raise
