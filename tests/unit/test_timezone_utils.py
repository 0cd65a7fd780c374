from datetime import date, datetime, timezone, timedelta

from app.core.timezone_utils import (
    normalize_to_utc,
    convert_utc_to_local,
    ensure_utc,
    get_local_date,
    get_day_bounds,
    get_week_bounds,
    week_bounds_for_date,
)

TZ = 'Europe/Zagreb'


def test_normalize_to_utc_naive_local():
    # 1 de julio de 2026 a las 10:00 local (CEST es UTC+2)
    local_naive = datetime(2026, 7, 1, 10, 0, 0)
    utc_dt = normalize_to_utc(local_naive, TZ)
    assert utc_dt.tzinfo == timezone.utc
    assert utc_dt.hour == 8 and utc_dt.minute == 0


def test_normalize_to_utc_aware_input():
    aware_dt = datetime(2026, 7, 1, 10, 0, 0, tzinfo=timezone(timedelta(hours=-4)))
    utc_dt = normalize_to_utc(aware_dt, TZ)
    assert utc_dt.tzinfo == timezone.utc
    assert utc_dt.hour == 14


def test_ensure_utc_treats_naive_as_utc():
    assert ensure_utc(datetime(2026, 1, 1, 12, 0)) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert ensure_utc(None) is None


def test_local_date_crosses_midnight():
    # 23:30 UTC del domingo ya es lunes en Zagreb (UTC+2 en verano)
    instant = datetime(2026, 6, 7, 23, 30, tzinfo=timezone.utc)
    assert get_local_date(instant, TZ) == date(2026, 6, 8)
    assert convert_utc_to_local(instant, TZ).hour == 1


def test_day_bounds():
    start, end = get_day_bounds(datetime(2026, 6, 2, 12, 0, tzinfo=timezone.utc), TZ)
    assert start == datetime(2026, 6, 1, 22, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 6, 2, 21, 59, 59, 999000, tzinfo=timezone.utc)


def test_week_bounds_monday_to_sunday():
    # Miércoles 3 de junio de 2026
    start, end = get_week_bounds(datetime(2026, 6, 3, 10, 0, tzinfo=timezone.utc), TZ)
    local_start = convert_utc_to_local(start, TZ)
    local_end = convert_utc_to_local(end, TZ)

    assert local_start.weekday() == 0
    assert (local_start.hour, local_start.minute, local_start.second) == (0, 0, 0)
    assert local_end.weekday() == 6
    assert (local_end.hour, local_end.minute, local_end.second) == (23, 59, 59)
    assert local_end.microsecond == 999000
    assert local_start.date() == date(2026, 6, 1)
    assert local_end.date() == date(2026, 6, 7)


def test_week_bounds_from_sunday_belongs_to_previous_monday():
    sunday_evening = datetime(2026, 6, 7, 18, 0, tzinfo=timezone.utc)
    start, _ = get_week_bounds(sunday_evening, TZ)
    assert get_local_date(start, TZ) == date(2026, 6, 1)


def test_week_bounds_across_dst_change():
    # La semana del 19 de octubre de 2026 empieza en CEST (UTC+2) y termina en CET (UTC+1)
    start, end = week_bounds_for_date(date(2026, 10, 21), TZ)
    assert start == datetime(2026, 10, 18, 22, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 10, 25, 22, 59, 59, 999000, tzinfo=timezone.utc)


def test_week_bounds_for_date_matches_reference():
    by_date = week_bounds_for_date(date(2026, 6, 5), TZ)
    by_instant = get_week_bounds(datetime(2026, 6, 5, 9, 0, tzinfo=timezone.utc), TZ)
    assert by_date == by_instant
