"""
Políticas de legalidad de slots.

Una política decide si un intervalo [start, end) es un slot reservable,
evaluándolo siempre en la hora local del gimnasio. Existen dos variantes:

- standard: 07:00-20:00 cualquier día de la semana.
- strict: domingo cerrado, sábado 07:00-10:00, entre semana 07:00-20:00,
  con antelación mínima, horizonte máximo de reserva y cutoff de cancelación.
"""
from datetime import datetime, time, timedelta
from typing import Optional
import logging

from app.core.config import get_settings
from app.core.timezone_utils import convert_utc_to_local, get_local_date

logger = logging.getLogger(__name__)

SLOT_DURATION = timedelta(hours=1)
OPENING_TIME = time(7, 0)
LAST_WEEKDAY_START = time(20, 0)
LAST_SATURDAY_START = time(10, 0)

SATURDAY = 5
SUNDAY = 6


class StandardBookingPolicy:
    """Slots de una hora en punto que empiezan entre 07:00 y 20:00, todos los días."""

    name = "standard"
    # Controles adicionales (solo la política estricta los activa)
    advance_notice: Optional[timedelta] = None
    horizon_days: Optional[int] = None
    enforce_cancel_cutoff = False

    def __init__(self, gym_timezone: str, cutoff_hours: int = 2):
        self.gym_timezone = gym_timezone
        self.cutoff = timedelta(hours=cutoff_hours)

    def _hours_reason(self, local_start: datetime) -> Optional[str]:
        start_time = local_start.time()
        if start_time < OPENING_TIME or start_time > LAST_WEEKDAY_START:
            return "Bookings must be between 07:00 and 20:00"
        return None

    def slot_rejection_reason(self, start: datetime, end: datetime) -> Optional[str]:
        """
        Motivo legible por el que el slot no es válido, o None si es legal.

        Args:
            start: Inicio del slot (aware)
            end: Fin del slot (aware)
        """
        local_start = convert_utc_to_local(start, self.gym_timezone)
        reason = self._hours_reason(local_start)
        if reason:
            return reason

        on_the_hour = local_start.minute == 0 and local_start.second == 0 and local_start.microsecond == 0
        if not on_the_hour or end - start != SLOT_DURATION:
            return "Bookings must be one-hour slots starting on the hour"
        return None

    def is_legal_slot(self, start: datetime, end: datetime) -> bool:
        return self.slot_rejection_reason(start, end) is None

    def admission_rejection_reason(self, start: datetime, now: datetime) -> Optional[str]:
        """Antelación mínima (None en la política estándar)."""
        return None

    def window_rejection_reason(self, start: datetime, now: datetime) -> Optional[str]:
        """Horizonte de reserva (None en la política estándar)."""
        return None


class StrictBookingPolicy(StandardBookingPolicy):
    """
    Variante por día de la semana.

    - Domingo: sin reservas.
    - Sábado: inicio entre 07:00 y 10:00.
    - Lunes a viernes: inicio entre 07:00 y 20:00.
    - Antelación mínima de `cutoff_hours` y horizonte de `horizon_days` días.
    - Los usuarios no administradores no pueden cancelar dentro del cutoff.
    """

    name = "strict"
    enforce_cancel_cutoff = True

    def __init__(self, gym_timezone: str, cutoff_hours: int = 2, horizon_days: int = 14):
        super().__init__(gym_timezone, cutoff_hours)
        self.advance_notice = timedelta(hours=cutoff_hours)
        self.horizon_days = horizon_days

    def _hours_reason(self, local_start: datetime) -> Optional[str]:
        weekday = local_start.weekday()
        start_time = local_start.time()

        if weekday == SUNDAY:
            return "Bookings are not available on Sundays"
        if weekday == SATURDAY:
            if start_time < OPENING_TIME or start_time > LAST_SATURDAY_START:
                return "Saturday bookings must be between 07:00 and 10:00"
            return None
        if start_time < OPENING_TIME or start_time > LAST_WEEKDAY_START:
            return "Weekday bookings must be between 07:00 and 20:00"
        return None

    def admission_rejection_reason(self, start: datetime, now: datetime) -> Optional[str]:
        if start - now < self.advance_notice:
            hours = int(self.advance_notice.total_seconds() // 3600)
            return f"Bookings must be made at least {hours} hours in advance"
        return None

    def window_rejection_reason(self, start: datetime, now: datetime) -> Optional[str]:
        today = get_local_date(now, self.gym_timezone)
        booking_day = get_local_date(start, self.gym_timezone)
        if booking_day < today or booking_day > today + timedelta(days=self.horizon_days):
            return f"Bookings can only be made up to {self.horizon_days} days in advance"
        return None


def get_booking_policy(name: Optional[str] = None) -> StandardBookingPolicy:
    """
    Construir la política configurada (BOOKING_POLICY) o la indicada por nombre.

    Raises:
        ValueError: Si el nombre no corresponde a ninguna política
    """
    settings = get_settings()
    policy_name = (name or settings.BOOKING_POLICY).lower()

    if policy_name == "standard":
        return StandardBookingPolicy(settings.GYM_TIMEZONE, settings.BOOKING_CUTOFF_HOURS)
    if policy_name == "strict":
        return StrictBookingPolicy(
            settings.GYM_TIMEZONE,
            settings.BOOKING_CUTOFF_HOURS,
            settings.BOOKING_HORIZON_DAYS
        )

    logger.error(f"Política de reservas desconocida: {policy_name}")
    raise ValueError(f"Unknown booking policy: {policy_name}")
