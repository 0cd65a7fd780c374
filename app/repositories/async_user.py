"""
AsyncUserRepository - Repositorio async para operaciones de usuario.

Actúa como proveedor de cuotas: expone el weekly_booking_limit de cada usuario.
"""
from typing import List, Optional
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import and_, exists, select

from app.models.user import User, UserRole
from app.models.booking import Booking, BookingStatus
from app.repositories.async_base import AsyncBaseRepository
from app.schemas.user import UserCreate, UserUpdate


class AsyncUserRepository(AsyncBaseRepository[User, UserCreate, UserUpdate]):
    """
    Repositorio async para operaciones de usuarios.

    Hereda de AsyncBaseRepository:
    - get(db, id) - Obtener usuario por ID
    - create(db, obj_in) - Crear usuario
    - update(db, db_obj, obj_in) - Actualizar usuario

    Métodos específicos de User:
    - get_by_email() - Buscar por email
    - get_without_bookings_in_range() - Miembros sin reservas en un rango
    - update_weekly_limit() - Cambiar la cuota semanal
    """

    async def get_by_email(self, db: AsyncSession, *, email: str) -> Optional[User]:
        """
        Obtener un usuario por email.

        Args:
            db: Sesión async de base de datos
            email: Email del usuario a buscar

        Returns:
            Usuario encontrado o None
        """
        stmt = select(User).where(User.email == email)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_without_bookings_in_range(
        self,
        db: AsyncSession,
        *,
        start: datetime,
        end: datetime
    ) -> List[User]:
        """
        Obtener los miembros (rol USER) sin ninguna reserva no cancelada
        cuyo start_time caiga en [start, end].

        Args:
            db: Sesión async de base de datos
            start: Inicio del rango (UTC)
            end: Fin del rango, inclusivo (UTC)

        Returns:
            Lista de usuarios ordenada por nombre
        """
        has_booking = exists().where(
            and_(
                Booking.user_id == User.id,
                Booking.status != BookingStatus.CANCELLED,
                Booking.start_time >= start,
                Booking.start_time <= end
            )
        )
        stmt = (
            select(User)
            .where(and_(User.role == UserRole.USER, ~has_booking))
            .order_by(User.name.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def update_weekly_limit(self, db: AsyncSession, *, user: User, limit: int) -> User:
        """Actualizar la cuota semanal de un usuario (1-10, validado en el schema y en la BD)."""
        return await self.update(db, db_obj=user, obj_in={"weekly_booking_limit": limit})


# Instancia singleton del repositorio async
async_user_repository = AsyncUserRepository(User)
