# Inicializador del paquete repositories
from app.repositories.async_base import AsyncBaseRepository
from app.repositories.async_user import async_user_repository
from app.repositories.async_booking import async_booking_repository

__all__ = [
    "AsyncBaseRepository",
    "async_user_repository",
    "async_booking_repository",
]
