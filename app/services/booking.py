"""
Servicio de reservas: control de admisión y resolución de conflictos.

Es la única vía por la que una reserva CONFIRMED llega a existir. Orquesta la
política de legalidad de slots, las comprobaciones de mismo día y de cuota
semanal contra el repositorio, y la reactivación de reservas canceladas.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
import enum
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timezone_utils import (
    Clock,
    get_local_date,
    get_week_bounds,
    normalize_to_utc,
    utc_now,
    week_bounds_for_date,
)
from app.models.booking import Booking, BookingStatus
from app.models.user import User
from app.repositories.async_booking import async_booking_repository
from app.repositories.async_user import async_user_repository
from app.schemas.booking import BookingCreate, BookingUpdate
from app.services.booking_policy import StandardBookingPolicy, get_booking_policy

logger = logging.getLogger(__name__)

SAME_DAY_CONFLICT = "You already have a booking on this day"


class BookingError(Exception):
    """Base de todos los rechazos del servicio de reservas."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Intervalo inválido, fuera de política, en el pasado o fuera de ventana."""
    pass


class AuthorizationError(BookingError):
    """El solicitante no es el dueño de la reserva ni administrador."""
    pass


class BookingConflictError(BookingError):
    """Día ya reservado o cuota semanal agotada."""
    pass


class NotFoundError(BookingError):
    """Usuario o reserva inexistente."""
    pass


class BookingTransition(str, enum.Enum):
    CREATED = "CREATED"          # nueva fila CONFIRMED
    REVIVED = "REVIVED"          # CANCELLED -> CONFIRMED (mismo usuario y día)
    RESCHEDULED = "RESCHEDULED"  # cambio de horario de una CONFIRMED
    CANCELLED = "CANCELLED"      # CONFIRMED -> CANCELLED
    COMPLETED = "COMPLETED"      # CONFIRMED -> COMPLETED (barrido)


class BookingService:
    """
    Control de admisión de reservas.

    La política de legalidad y el reloj son inyectables; por defecto se usa
    la política configurada en BOOKING_POLICY y la hora UTC del sistema.
    """

    def __init__(self, policy: Optional[StandardBookingPolicy] = None, clock: Clock = utc_now):
        self._policy = policy
        self.clock = clock

    @property
    def policy(self) -> StandardBookingPolicy:
        if self._policy is None:
            self._policy = get_booking_policy()
        return self._policy

    @property
    def gym_timezone(self) -> str:
        return self.policy.gym_timezone

    @property
    def _cutoff_hours(self) -> int:
        return int(self.policy.cutoff.total_seconds() // 3600)

    def _log_transition(self, transition: BookingTransition, booking: Booking) -> None:
        logger.info(
            f"Reserva {booking.id} {transition.value}: usuario={booking.user_id} "
            f"inicio={booking.start_time.isoformat()}"
        )

    def _check_slot(self, start: datetime, end: datetime, now: datetime, *, administrative: bool) -> None:
        """
        Comprobaciones de intervalo que no dependen del historial del usuario.

        Los administradores solo pasan por la legalidad del slot.
        """
        if not administrative:
            reason = self.policy.admission_rejection_reason(start, now)
            if reason:
                raise ValidationError(reason)

        reason = self.policy.slot_rejection_reason(start, end)
        if reason:
            raise ValidationError(reason)

        if administrative:
            return

        reason = self.policy.window_rejection_reason(start, now)
        if reason:
            raise ValidationError(reason)

        if start <= now:
            raise ValidationError("Cannot book sessions in the past")

    async def _check_weekly_quota(
        self,
        db: AsyncSession,
        user: User,
        start: datetime,
        exclude_id: Optional[str] = None
    ) -> None:
        week_start, week_end = get_week_bounds(start, self.gym_timezone)
        count = await async_booking_repository.count_active_in_range(
            db, user_id=user.id, start=week_start, end=week_end, exclude_id=exclude_id
        )
        if count >= user.weekly_booking_limit:
            raise BookingConflictError(
                f"Weekly booking limit reached ({user.weekly_booking_limit} sessions per week)"
            )

    async def _get_owned_booking(
        self,
        db: AsyncSession,
        booking_id: str,
        requester: User,
        forbidden_message: str
    ) -> Booking:
        booking = await async_booking_repository.get(db, id=booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if not requester.is_admin and booking.user_id != requester.id:
            raise AuthorizationError(forbidden_message)
        return booking

    async def _commit(self, db: AsyncSession) -> None:
        """Commit traduciendo la violación del índice único diario a un conflicto."""
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Violación del índice de reserva diaria: {e}")
            raise BookingConflictError(SAME_DAY_CONFLICT)

    async def create_booking(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        booking_in: BookingCreate
    ) -> Booking:
        """
        Admitir una nueva reserva para un usuario.

        Orden de comprobaciones: antelación (estricta), legalidad del slot,
        ventana de reserva (estricta), pasado, usuario, mismo día y cuota semanal.
        Si el usuario tiene una reserva CANCELLED ese mismo día se reactiva en
        lugar de insertar una fila nueva.

        Raises:
            ValidationError, NotFoundError, BookingConflictError
        """
        now = self.clock()
        start = normalize_to_utc(booking_in.start_time, self.gym_timezone)
        end = normalize_to_utc(booking_in.end_time, self.gym_timezone)

        self._check_slot(start, end, now, administrative=False)

        user = await async_user_repository.get(db, id=user_id)
        if not user:
            raise NotFoundError("User not found")

        booking_date = get_local_date(start, self.gym_timezone)
        existing = await async_booking_repository.get_active_on_day(
            db, user_id=user.id, booking_date=booking_date
        )
        if existing:
            raise BookingConflictError(SAME_DAY_CONFLICT)

        await self._check_weekly_quota(db, user, start)

        cancelled = await async_booking_repository.get_cancelled_on_day(
            db, user_id=user.id, booking_date=booking_date
        )
        values = {
            "start_time": start,
            "end_time": end,
            "booking_date": booking_date,
            "notes": booking_in.notes,
            "status": BookingStatus.CONFIRMED,
        }

        try:
            if cancelled:
                booking = await async_booking_repository.update(db, db_obj=cancelled, obj_in=values)
                transition = BookingTransition.REVIVED
            else:
                booking = await async_booking_repository.create(db, obj_in={"user_id": user.id, **values})
                transition = BookingTransition.CREATED
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Carrera en reserva diaria para usuario {user_id}: {e}")
            raise BookingConflictError(SAME_DAY_CONFLICT)

        await self._commit(db)
        self._log_transition(transition, booking)
        return booking

    async def get_booking(self, db: AsyncSession, *, booking_id: str, requester: User) -> Booking:
        return await self._get_owned_booking(
            db, booking_id, requester, "You can only view your own bookings"
        )

    async def get_bookings(
        self,
        db: AsyncSession,
        *,
        requester: User,
        user_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 100
    ) -> List[Booking]:
        """
        Listar reservas.

        Un usuario normal solo ve las suyas. Un administrador ve las de otro
        usuario indicando user_id, o las de todos indicando start_date y
        end_date; sin esos filtros ve solo las suyas. Sin filtro de estado las
        canceladas se omiten.
        """
        if not requester.is_admin:
            if user_id is not None and user_id != requester.id:
                raise AuthorizationError("You can only view your own bookings")
            user_id = requester.id
        elif user_id is None and (start_date is None or end_date is None):
            user_id = requester.id

        return await async_booking_repository.get_bookings(
            db,
            user_id=user_id,
            status=status,
            start_date=normalize_to_utc(start_date, self.gym_timezone),
            end_date=normalize_to_utc(end_date, self.gym_timezone),
            exclude_cancelled=True,
            limit=limit
        )

    async def update_booking(
        self,
        db: AsyncSession,
        *,
        booking_id: str,
        requester: User,
        booking_in: BookingUpdate
    ) -> Booking:
        """
        Modificar una reserva (horario, notas o cancelación).

        - Solo el dueño o un administrador.
        - startTime y endTime se envían juntos o no se envían.
        - Para no administradores: cutoff de reprogramación, legalidad,
          pasado, mismo día y cuota semanal excluyendo esta reserva.
        - Para administradores: solo legalidad del slot.
        - status solo admite CANCELLED y sigue las reglas de cancel_booking.

        Raises:
            NotFoundError, AuthorizationError, ValidationError, BookingConflictError
        """
        booking = await self._get_owned_booking(
            db, booking_id, requester, "You can only edit your own bookings"
        )
        update_data: Dict[str, Any] = booking_in.model_dump(exclude_unset=True)

        new_status = update_data.pop("status", None)
        if new_status is not None and new_status != BookingStatus.CANCELLED:
            raise ValidationError("Booking status can only be changed to CANCELLED")

        new_start = update_data.pop("start_time", None)
        new_end = update_data.pop("end_time", None)
        if (new_start is None) != (new_end is None):
            raise ValidationError("startTime and endTime must be provided together")

        reschedule = new_start is not None
        if reschedule and new_status is not None:
            raise ValidationError("Cannot reschedule and cancel a booking in the same request")

        if new_status is not None:
            if "notes" in update_data:
                booking.notes = update_data["notes"]
            return await self.cancel_booking(db, booking_id=booking.id, requester=requester)

        if reschedule:
            await self._reschedule(db, booking, requester, new_start, new_end)

        if "notes" in update_data:
            booking.notes = update_data["notes"]

        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Carrera al reprogramar la reserva {booking_id}: {e}")
            raise BookingConflictError(SAME_DAY_CONFLICT)

        await self._commit(db)
        await db.refresh(booking)
        if reschedule:
            self._log_transition(BookingTransition.RESCHEDULED, booking)
        return booking

    async def _reschedule(
        self,
        db: AsyncSession,
        booking: Booking,
        requester: User,
        new_start: datetime,
        new_end: datetime
    ) -> None:
        if booking.status != BookingStatus.CONFIRMED:
            raise ValidationError("Only confirmed bookings can be rescheduled")

        now = self.clock()
        start = normalize_to_utc(new_start, self.gym_timezone)
        end = normalize_to_utc(new_end, self.gym_timezone)
        if end <= start:
            raise ValidationError("End time must be after start time")

        administrative = requester.is_admin
        if not administrative and booking.start_time - now < self.policy.cutoff:
            raise ValidationError(
                f"Cannot reschedule booking less than {self._cutoff_hours} hours before start time"
            )

        self._check_slot(start, end, now, administrative=administrative)

        booking_date = get_local_date(start, self.gym_timezone)
        if not administrative:
            existing = await async_booking_repository.get_active_on_day(
                db, user_id=booking.user_id, booking_date=booking_date, exclude_id=booking.id
            )
            if existing:
                raise BookingConflictError(SAME_DAY_CONFLICT)

            owner = await async_user_repository.get(db, id=booking.user_id)
            await self._check_weekly_quota(db, owner, start, exclude_id=booking.id)

        booking.start_time = start
        booking.end_time = end
        booking.booking_date = booking_date

    async def cancel_booking(self, db: AsyncSession, *, booking_id: str, requester: User) -> Booking:
        """
        Cancelar una reserva (borrado lógico).

        - Cancelar una reserva ya cancelada no hace nada.
        - Una reserva COMPLETED no se puede cancelar.
        - Con la política estricta, un no administrador no puede cancelar a
          menos de 2 horas del inicio.

        Raises:
            NotFoundError, AuthorizationError, ValidationError
        """
        booking = await self._get_owned_booking(
            db, booking_id, requester, "You can only cancel your own bookings"
        )

        if booking.status == BookingStatus.CANCELLED:
            # Las notas del mismo PATCH se guardan aunque la reserva ya estuviera cancelada
            if db.is_modified(booking):
                await db.commit()
                await db.refresh(booking)
            return booking
        if booking.status == BookingStatus.COMPLETED:
            raise ValidationError("Completed bookings cannot be cancelled")

        now = self.clock()
        if (
            not requester.is_admin
            and self.policy.enforce_cancel_cutoff
            and booking.start_time - now < self.policy.cutoff
        ):
            raise ValidationError(f"Cannot cancel booking less than {self._cutoff_hours} hours before start time")

        booking.status = BookingStatus.CANCELLED
        booking.updated_at = now
        await db.commit()
        await db.refresh(booking)
        self._log_transition(BookingTransition.CANCELLED, booking)
        return booking

    async def cancel_all_bookings_for_user(self, db: AsyncSession, *, user_id: str, requester: User) -> int:
        """
        Cancelar todas las reservas no canceladas de un usuario.

        Returns:
            Número de reservas canceladas (0 si no había ninguna activa)

        Raises:
            AuthorizationError: Si el solicitante no es el usuario ni administrador
        """
        if not requester.is_admin and requester.id != user_id:
            raise AuthorizationError("You can only cancel your own bookings")

        count = await async_booking_repository.cancel_all_for_user(db, user_id=user_id, now=self.clock())
        await db.commit()
        logger.info(f"Canceladas {count} reservas del usuario {user_id}")
        return count

    async def mark_past_bookings_completed(self, db: AsyncSession) -> int:
        """Una pasada del barrido: CONFIRMED con end_time < ahora pasan a COMPLETED."""
        count = await async_booking_repository.mark_expired_as_completed(db, now=self.clock())
        await db.commit()
        if count:
            logger.info(f"{count} reservas marcadas como {BookingTransition.COMPLETED.value}")
        return count

    async def get_weekly_booking_count(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        week_of: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Reservas no canceladas de un usuario en una semana (lunes a domingo).

        Args:
            user_id: ID del usuario
            week_of: Cualquier día de la semana a consultar (por defecto la actual)

        Raises:
            NotFoundError: Si el usuario no existe
        """
        user = await async_user_repository.get(db, id=user_id)
        if not user:
            raise NotFoundError("User not found")

        if week_of is not None:
            week_start, week_end = week_bounds_for_date(week_of, self.gym_timezone)
        else:
            week_start, week_end = get_week_bounds(self.clock(), self.gym_timezone)

        count = await async_booking_repository.count_active_in_range(
            db, user_id=user.id, start=week_start, end=week_end
        )
        return {
            "count": count,
            "weekly_limit": user.weekly_booking_limit,
            "week_start": week_start,
            "week_end": week_end,
        }

    async def get_users_without_bookings_this_week(self, db: AsyncSession) -> List[User]:
        week_start, week_end = get_week_bounds(self.clock(), self.gym_timezone)
        return await async_user_repository.get_without_bookings_in_range(
            db, start=week_start, end=week_end
        )

    async def get_user_booking_stats(self, db: AsyncSession, *, user_id: str, requester: User) -> Dict[str, int]:
        """
        Estadísticas de reservas de un usuario (él mismo o un administrador).

        Raises:
            AuthorizationError, NotFoundError
        """
        if not requester.is_admin and requester.id != user_id:
            raise AuthorizationError("You can only view your own statistics")

        user = await async_user_repository.get(db, id=user_id)
        if not user:
            raise NotFoundError("User not found")

        now = self.clock()
        counts = await async_booking_repository.get_status_counts(db, user_id=user.id)
        upcoming = await async_booking_repository.count_upcoming(db, user_id=user.id, now=now)
        week_start, week_end = get_week_bounds(now, self.gym_timezone)
        current_week = await async_booking_repository.count_active_in_range(
            db, user_id=user.id, start=week_start, end=week_end
        )

        return {
            "total_bookings": sum(counts.values()),
            "completed_bookings": counts[BookingStatus.COMPLETED],
            "cancelled_bookings": counts[BookingStatus.CANCELLED],
            "upcoming_bookings": upcoming,
            "current_week_bookings": current_week,
            "weekly_booking_limit": user.weekly_booking_limit,
        }

    async def update_weekly_limit(self, db: AsyncSession, *, user_id: str, limit: int) -> User:
        """
        Cambiar la cuota semanal de un usuario (1-10).

        Raises:
            ValidationError, NotFoundError
        """
        if limit < 1 or limit > 10:
            raise ValidationError("Weekly booking limit must be between 1 and 10")

        user = await async_user_repository.get(db, id=user_id)
        if not user:
            raise NotFoundError("User not found")

        user = await async_user_repository.update_weekly_limit(db, user=user, limit=limit)
        await db.commit()
        logger.info(f"Cuota semanal del usuario {user_id} actualizada a {limit}")
        return user


# Instancia del servicio
booking_service = BookingService()
