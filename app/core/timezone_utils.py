"""
Utilidades para el manejo de zonas horarias en el sistema.

Todas las reservas se guardan en UTC. El "día" y la "semana" de una reserva
se calculan siempre en la zona horaria del gimnasio.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Tuple
import pytz

# Reloj inyectable: cualquier callable sin argumentos que devuelva un datetime aware
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Hora actual en UTC (aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Devuelve `dt` como datetime aware en UTC.

    Los datetimes naive se interpretan como UTC (SQLite no guarda tzinfo).
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def convert_naive_to_gym_timezone(naive_dt: datetime, gym_timezone: str) -> datetime:
    """
    Convierte un datetime naive (sin timezone) interpretándolo como hora local del gimnasio
    y lo convierte a un datetime aware en la zona horaria del gimnasio.

    Args:
        naive_dt: Datetime naive que representa la hora local del gimnasio
        gym_timezone: Zona horaria del gimnasio (ej: 'Europe/Zagreb')

    Returns:
        Datetime aware en la zona horaria del gimnasio
    """
    if naive_dt.tzinfo is not None:
        raise ValueError("El datetime debe ser naive (sin timezone)")

    tz = pytz.timezone(gym_timezone)
    return tz.localize(naive_dt)


def normalize_to_utc(dt: datetime, gym_timezone: str) -> datetime:
    """
    Normaliza un datetime a UTC manejando entradas naive o aware.

    - Si `dt` es naive, se interpreta en la timezone del gimnasio y se convierte a UTC.
    - Si `dt` es aware, se convierte directamente a UTC preservando la hora exacta.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return convert_naive_to_gym_timezone(dt, gym_timezone).astimezone(timezone.utc)
    return dt.astimezone(timezone.utc)


def convert_utc_to_local(utc_dt: datetime, gym_timezone: str) -> datetime:
    """
    Convierte un datetime UTC a hora local del gimnasio.

    Args:
        utc_dt: Datetime aware en UTC (si es naive se asume UTC)
        gym_timezone: Zona horaria del gimnasio

    Returns:
        Datetime aware en la zona horaria del gimnasio
    """
    tz = pytz.timezone(gym_timezone)
    return ensure_utc(utc_dt).astimezone(tz)


def get_local_date(dt: datetime, gym_timezone: str) -> date:
    """Día del calendario (en la zona del gimnasio) al que pertenece `dt`."""
    return convert_utc_to_local(dt, gym_timezone).date()


def _local_midnight_utc(day: date, gym_timezone: str) -> datetime:
    local_midnight = convert_naive_to_gym_timezone(datetime.combine(day, time.min), gym_timezone)
    return local_midnight.astimezone(timezone.utc)


def get_day_bounds(reference: datetime, gym_timezone: str) -> Tuple[datetime, datetime]:
    """
    Límites del día local que contiene `reference`: 00:00:00.000 a 23:59:59.999.

    Returns:
        Tupla (inicio, fin) en UTC
    """
    day = get_local_date(reference, gym_timezone)
    start = _local_midnight_utc(day, gym_timezone)
    end = _local_midnight_utc(day + timedelta(days=1), gym_timezone) - timedelta(milliseconds=1)
    return start, end


def get_week_bounds(reference: datetime, gym_timezone: str) -> Tuple[datetime, datetime]:
    """
    Límites de la semana (lunes a domingo) que contiene `reference`.

    La semana empieza el lunes a las 00:00:00.000 y termina el domingo a las
    23:59:59.999, ambos en hora local del gimnasio.

    Returns:
        Tupla (inicio, fin) en UTC
    """
    day = get_local_date(reference, gym_timezone)
    monday = day - timedelta(days=day.weekday())
    start = _local_midnight_utc(monday, gym_timezone)
    end = _local_midnight_utc(monday + timedelta(days=7), gym_timezone) - timedelta(milliseconds=1)
    return start, end


def week_bounds_for_date(day: date, gym_timezone: str) -> Tuple[datetime, datetime]:
    """Igual que get_week_bounds pero partiendo de un día del calendario local."""
    reference = _local_midnight_utc(day, gym_timezone)
    return get_week_bounds(reference, gym_timezone)
