"""
Rate Limiting para GymBookingAPI

Limitación de velocidad por cliente usando slowapi. El almacenamiento es en
memoria por defecto; con RATE_LIMIT_STORAGE_URI=redis://... se comparte entre
instancias.
"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import redis
from app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

MEMORY_STORAGE_URI = "memory://"


def resolve_storage_uri(storage_uri: str) -> str:
    """
    Devuelve el storage a usar por el limiter.

    Si se configuró Redis y no responde, se usa memoria local (solo desarrollo).
    """
    if not storage_uri.startswith(("redis://", "rediss://")):
        return storage_uri
    try:
        redis.from_url(storage_uri, socket_connect_timeout=2).ping()
        logger.info("Rate limiting configurado con backend Redis")
        return storage_uri
    except redis.RedisError as e:
        logger.warning(f"No se pudo conectar a Redis para rate limiting: {e}")
        logger.warning("Rate limiting usando memoria local (solo desarrollo)")
        return MEMORY_STORAGE_URI


# Límites específicos por tipo de endpoint
RATE_LIMITS = {
    # Creación y modificación de reservas
    "booking_write": "30 per minute",
    # Operaciones administrativas masivas
    "admin_bulk": "10 per minute",
}


def get_client_identifier(request: Request) -> str:
    """Identificador del cliente: IP del socket ASGI o, en su defecto, la de slowapi."""
    if request.client and request.client.host:
        return request.client.host
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_identifier,
    storage_uri=resolve_storage_uri(settings.RATE_LIMIT_STORAGE_URI),
    default_limits=[settings.RATE_LIMIT_DEFAULT]
)


def custom_rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handler personalizado para rate limit exceeded"""
    logger.warning(
        f"Rate limit exceeded para {get_client_identifier(request)} "
        f"en {request.url.path} - Límite: {exc.detail}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": "Too many requests. Try again later.",
            "limit": exc.detail,
        }
    )


__all__ = ["limiter", "custom_rate_limit_exceeded_handler", "RATE_LIMITS"]
