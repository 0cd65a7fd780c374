"""
AsyncBookingRepository - Repositorio async de reservas (Booking Store).

Todas las consultas trabajan con instantes UTC; el "día" de una reserva es la
columna booking_date, calculada en la zona horaria del gimnasio por el servicio.
"""
from typing import List, Optional, Dict
from datetime import date, datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import and_, func, select, update
from sqlalchemy.orm import selectinload

from app.repositories.async_base import AsyncBaseRepository
from app.models.booking import Booking, BookingStatus
from app.schemas.booking import BookingCreate, BookingUpdate

logger = logging.getLogger(__name__)


class AsyncBookingRepository(AsyncBaseRepository[Booking, BookingCreate, BookingUpdate]):
    """
    Repositorio async para reservas.

    Hereda de AsyncBaseRepository:
    - get(db, id) - Obtener reserva por ID
    - create(db, obj_in) - Crear reserva
    - update(db, db_obj, obj_in) - Actualizar reserva

    Métodos específicos:
    - get_active_on_day() - Reserva no cancelada de un usuario en un día
    - get_cancelled_on_day() - Reserva cancelada reutilizable (revival)
    - count_active_in_range() - Reservas no canceladas en un rango (cuota semanal)
    - get_bookings() - Listado filtrado
    - mark_expired_as_completed() - Barrido CONFIRMED -> COMPLETED
    - cancel_all_for_user() - Cancelación masiva
    - get_status_counts() - Conteos por estado (estadísticas)
    """

    async def get_active_on_day(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        booking_date: date,
        exclude_id: Optional[str] = None
    ) -> Optional[Booking]:
        """
        Obtener la reserva no cancelada de un usuario para un día local.

        Args:
            db: Sesión async de base de datos
            user_id: ID del usuario
            booking_date: Día del calendario en la zona del gimnasio
            exclude_id: ID de reserva a ignorar (la que se está modificando)

        Returns:
            La reserva encontrada o None
        """
        stmt = select(Booking).where(
            and_(
                Booking.user_id == user_id,
                Booking.booking_date == booking_date,
                Booking.status != BookingStatus.CANCELLED
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(Booking.id != exclude_id)

        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def get_cancelled_on_day(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        booking_date: date
    ) -> Optional[Booking]:
        """
        Obtener la reserva cancelada más reciente de un usuario para un día local.

        Es la candidata a reactivarse cuando el usuario vuelve a reservar ese día.
        """
        stmt = (
            select(Booking)
            .where(
                and_(
                    Booking.user_id == user_id,
                    Booking.booking_date == booking_date,
                    Booking.status == BookingStatus.CANCELLED
                )
            )
            .order_by(Booking.updated_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def count_active_in_range(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None
    ) -> int:
        """
        Contar reservas no canceladas de un usuario cuyo start_time cae en [start, end].

        Args:
            db: Sesión async de base de datos
            user_id: ID del usuario
            start: Inicio del rango (UTC)
            end: Fin del rango, inclusivo (UTC)
            exclude_id: ID de reserva a ignorar

        Returns:
            Número de reservas
        """
        stmt = select(func.count(Booking.id)).where(
            and_(
                Booking.user_id == user_id,
                Booking.status != BookingStatus.CANCELLED,
                Booking.start_time >= start,
                Booking.start_time <= end
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(Booking.id != exclude_id)

        result = await db.execute(stmt)
        return result.scalar() or 0

    async def get_bookings(
        self,
        db: AsyncSession,
        *,
        user_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        exclude_cancelled: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> List[Booking]:
        """
        Listar reservas (más recientes primero) con filtros opcionales.

        Args:
            db: Sesión async de base de datos
            user_id: Filtrar por usuario
            status: Filtrar por estado
            start_date: start_time >= start_date (UTC)
            end_date: start_time <= end_date (UTC)
            exclude_cancelled: Omitir canceladas cuando no se filtra por estado
            skip: Registros a omitir
            limit: Máximo de registros

        Returns:
            Lista de reservas
        """
        stmt = select(Booking).options(selectinload(Booking.user))

        if user_id is not None:
            stmt = stmt.where(Booking.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        elif exclude_cancelled:
            stmt = stmt.where(Booking.status != BookingStatus.CANCELLED)
        if start_date is not None:
            stmt = stmt.where(Booking.start_time >= start_date)
        if end_date is not None:
            stmt = stmt.where(Booking.start_time <= end_date)

        stmt = stmt.order_by(Booking.start_time.desc()).offset(skip).limit(limit)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def mark_expired_as_completed(self, db: AsyncSession, *, now: datetime) -> int:
        """
        Marcar como COMPLETED todas las reservas CONFIRMED cuyo end_time < now.

        Operación idempotente: una segunda ejecución sin nuevas expiraciones
        devuelve 0.

        Returns:
            Número de reservas actualizadas
        """
        stmt = (
            update(Booking)
            .where(
                and_(
                    Booking.status == BookingStatus.CONFIRMED,
                    Booking.end_time < now
                )
            )
            .values(status=BookingStatus.COMPLETED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount or 0

    async def cancel_all_for_user(self, db: AsyncSession, *, user_id: str, now: datetime) -> int:
        """
        Cancelar todas las reservas no canceladas de un usuario.

        Returns:
            Número de reservas canceladas (0 si no tenía ninguna activa)
        """
        stmt = (
            update(Booking)
            .where(
                and_(
                    Booking.user_id == user_id,
                    Booking.status != BookingStatus.CANCELLED
                )
            )
            .values(status=BookingStatus.CANCELLED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount or 0

    async def get_status_counts(self, db: AsyncSession, *, user_id: str) -> Dict[BookingStatus, int]:
        """Conteo de reservas de un usuario agrupado por estado."""
        stmt = (
            select(Booking.status, func.count(Booking.id))
            .where(Booking.user_id == user_id)
            .group_by(Booking.status)
        )
        result = await db.execute(stmt)
        counts = {status: 0 for status in BookingStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    async def count_upcoming(self, db: AsyncSession, *, user_id: str, now: datetime) -> int:
        """Reservas CONFIRMED de un usuario que todavía no han empezado."""
        stmt = select(func.count(Booking.id)).where(
            and_(
                Booking.user_id == user_id,
                Booking.status == BookingStatus.CONFIRMED,
                Booking.start_time > now
            )
        )
        result = await db.execute(stmt)
        return result.scalar() or 0


# Instancia singleton del repositorio async
async_booking_repository = AsyncBookingRepository(Booking)
