import os
from typing import Any, List, Optional, Union
from functools import lru_cache
import logging

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Configurar el logger
logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Permitir campos extra en .env
    )

    # Configuración básica
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    # 60 minutos * 24 horas * 7 días = 7 días
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Información del proyecto
    PROJECT_NAME: str = "GymBookingAPI"
    PROJECT_DESCRIPTION: str = "API con FastAPI para reservas de sesiones de gimnasio"
    VERSION: str = "1.0.0"

    # Debug mode
    DEBUG_MODE: bool = os.getenv("DEBUG_MODE", "False").lower() in ("true", "1", "t")
    # Escribir logs también en logs/app_YYYYMMDD.log
    LOG_TO_FILE: bool = os.getenv("LOG_TO_FILE", "False").lower() in ("true", "1", "t")

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode='before')
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    DATABASE_URL: str = "sqlite+aiosqlite:///./gym_booking.db"
    SQLALCHEMY_DATABASE_URI: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("DATABASE_URL", mode="before")
    def ensure_async_driver(cls, v: Optional[str]) -> str:
        """Asegura que DATABASE_URL use un driver async (asyncpg / aiosqlite)."""
        # No loguear el valor completo por seguridad
        logger.info("DATABASE_URL detectado en configuración")
        if not v:
            return "sqlite+aiosqlite:///./gym_booking.db"

        if v.startswith("postgres://"):
            logger.info("Corrigiendo formato de postgres:// a postgresql+asyncpg://")
            return "postgresql+asyncpg://" + v[len("postgres://"):]
        if v.startswith("postgresql://"):
            logger.info("Añadiendo driver asyncpg a DATABASE_URL")
            return "postgresql+asyncpg://" + v[len("postgresql://"):]
        if v.startswith("sqlite://") and not v.startswith("sqlite+aiosqlite://"):
            return "sqlite+aiosqlite://" + v[len("sqlite://"):]
        return v

    @field_validator("SQLALCHEMY_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info) -> Any:
        """Configura la URI de SQLAlchemy basada en DATABASE_URL."""
        if v:
            return v
        return info.data.get("DATABASE_URL")

    # Zona horaria del gimnasio: define el "día" y la "semana" de las reservas
    GYM_TIMEZONE: str = "Europe/Zagreb"

    # Política de reservas: "standard" (07:00-20:00 todos los días) o "strict"
    BOOKING_POLICY: str = "standard"
    BOOKING_CUTOFF_HOURS: int = 2
    BOOKING_HORIZON_DAYS: int = 14
    DEFAULT_WEEKLY_BOOKING_LIMIT: int = 3

    @field_validator("BOOKING_POLICY", mode="before")
    def validate_booking_policy(cls, v: str) -> str:
        value = (v or "standard").strip().lower()
        if value not in ("standard", "strict"):
            raise ValueError("BOOKING_POLICY debe ser 'standard' o 'strict'")
        return value

    # Scheduler de finalización de reservas
    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "True").lower() in ("true", "1", "t")
    BOOKING_SWEEP_INTERVAL_SECONDS: int = 60

    # Rate limiting
    RATE_LIMIT_DEFAULT: str = "100 per minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Primer administrador (create_tables.py)
    FIRST_ADMIN_EMAIL: Optional[str] = None
    FIRST_ADMIN_NAME: str = "Administrator"

# Usar una función con caché para obtener la configuración
@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    logger.info("Configuración cargada correctamente")
    return settings
