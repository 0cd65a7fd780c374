"""
Tests del repositorio async de reservas y de usuarios.
"""
from datetime import date, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.timezone_utils import get_week_bounds
from app.models.booking import BookingStatus
from app.repositories.async_booking import async_booking_repository
from app.repositories.async_user import async_user_repository
from conftest import GYM_TZ, NOW, local


@pytest.mark.asyncio
async def test_get_active_on_day_ignores_cancelled_and_excluded(db, member, make_booking):
    cancelled = await make_booking(member, local(2026, 6, 2, 9), status=BookingStatus.CANCELLED)
    active = await make_booking(member, local(2026, 6, 2, 15))

    found = await async_booking_repository.get_active_on_day(
        db, user_id=member.id, booking_date=date(2026, 6, 2)
    )
    assert found.id == active.id

    assert await async_booking_repository.get_active_on_day(
        db, user_id=member.id, booking_date=date(2026, 6, 2), exclude_id=active.id
    ) is None

    revivable = await async_booking_repository.get_cancelled_on_day(
        db, user_id=member.id, booking_date=date(2026, 6, 2)
    )
    assert revivable.id == cancelled.id


@pytest.mark.asyncio
async def test_unique_index_allows_only_one_active_booking_per_day(db, member, make_booking):
    await make_booking(member, local(2026, 6, 2, 9), status=BookingStatus.CANCELLED)
    await make_booking(member, local(2026, 6, 2, 10), status=BookingStatus.CANCELLED)
    await make_booking(member, local(2026, 6, 2, 11))

    with pytest.raises(IntegrityError):
        await make_booking(member, local(2026, 6, 2, 12))


@pytest.mark.asyncio
async def test_count_active_in_range_uses_week_bounds(db, member, make_booking):
    await make_booking(member, local(2026, 6, 1, 7))
    await make_booking(member, local(2026, 6, 7, 19), status=BookingStatus.COMPLETED)
    await make_booking(member, local(2026, 6, 3, 9), status=BookingStatus.CANCELLED)
    await make_booking(member, local(2026, 6, 8, 7))

    week_start, week_end = get_week_bounds(NOW, GYM_TZ)
    count = await async_booking_repository.count_active_in_range(
        db, user_id=member.id, start=week_start, end=week_end
    )
    assert count == 2


@pytest.mark.asyncio
async def test_get_bookings_filters(db, member, other_member, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))
    await make_booking(member, local(2026, 6, 3, 9), status=BookingStatus.CANCELLED)
    await make_booking(member, local(2026, 6, 4, 9))
    await make_booking(other_member, local(2026, 6, 2, 9))

    mine = await async_booking_repository.get_bookings(db, user_id=member.id, exclude_cancelled=True)
    assert [b.start_time for b in mine] == [local(2026, 6, 4, 9), local(2026, 6, 2, 9)]

    cancelled = await async_booking_repository.get_bookings(
        db, user_id=member.id, status=BookingStatus.CANCELLED, exclude_cancelled=True
    )
    assert len(cancelled) == 1

    in_range = await async_booking_repository.get_bookings(
        db, start_date=local(2026, 6, 2, 0), end_date=local(2026, 6, 2, 23)
    )
    assert {b.user_id for b in in_range} == {member.id, other_member.id}


@pytest.mark.asyncio
async def test_mark_expired_as_completed(db, member, make_booking):
    await make_booking(member, NOW - timedelta(hours=2))
    await make_booking(member, NOW - timedelta(days=1), status=BookingStatus.CANCELLED)
    await make_booking(member, NOW + timedelta(hours=4))

    assert await async_booking_repository.mark_expired_as_completed(db, now=NOW) == 1
    await db.commit()
    assert await async_booking_repository.mark_expired_as_completed(db, now=NOW) == 0

    counts = await async_booking_repository.get_status_counts(db, user_id=member.id)
    assert counts == {
        BookingStatus.CONFIRMED: 1,
        BookingStatus.CANCELLED: 1,
        BookingStatus.COMPLETED: 1,
    }


@pytest.mark.asyncio
async def test_users_without_bookings_in_range(db, member, other_member, admin, make_booking):
    await make_booking(member, local(2026, 6, 3, 9))

    week_start, week_end = get_week_bounds(NOW, GYM_TZ)
    users = await async_user_repository.get_without_bookings_in_range(db, start=week_start, end=week_end)

    assert [u.email for u in users] == ["other@test.com"]


@pytest.mark.asyncio
async def test_get_by_email(db, member):
    found = await async_user_repository.get_by_email(db, email="member@test.com")
    assert found.id == member.id
    assert await async_user_repository.get_by_email(db, email="nobody@test.com") is None
