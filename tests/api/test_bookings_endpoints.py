"""
Tests for the Booking and User Endpoints

Requests go through the full FastAPI stack (auth dependency, error mapping and
camelCase serialization) against the in-memory test database.
"""
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.auth import create_access_token
from app.db.session import get_async_db
from app.main import app
from app.middleware.rate_limit import limiter
from app.models.booking import Booking, BookingStatus
from app.services.booking import booking_service
from app.services.booking_policy import StandardBookingPolicy
from conftest import GYM_TZ, NOW, local

API = "/api/v1"


def parse(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest_asyncio.fixture
async def client(session_factory, monkeypatch):
    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    monkeypatch.setattr(booking_service, "clock", lambda: NOW)
    monkeypatch.setattr(booking_service, "_policy", StandardBookingPolicy(GYM_TZ))
    monkeypatch.setattr(limiter, "enabled", False)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_create_booking_returns_camel_case(client, member):
    response = await client.post(
        f"{API}/bookings",
        json={
            "startTime": "2026-06-02T09:00:00+02:00",
            "endTime": "2026-06-02T10:00:00+02:00",
            "notes": "legs day",
        },
        headers=auth_headers(member),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["userId"] == member.id
    assert data["status"] == "CONFIRMED"
    assert data["notes"] == "legs day"
    assert parse(data["startTime"]) == local(2026, 6, 2, 9)
    assert parse(data["endTime"]) == local(2026, 6, 2, 10)


@pytest.mark.asyncio
async def test_create_booking_requires_token(client):
    response = await client.post(
        f"{API}/bookings",
        json={"startTime": "2026-06-02T09:00:00+02:00", "endTime": "2026-06-02T10:00:00+02:00"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client):
    response = await client.get(f"{API}/bookings", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Could not validate credentials"


@pytest.mark.asyncio
async def test_illegal_slot_returns_400(client, member):
    response = await client.post(
        f"{API}/bookings",
        json={"startTime": "2026-06-02T21:00:00+02:00", "endTime": "2026-06-02T22:00:00+02:00"},
        headers=auth_headers(member),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Bookings must be between 07:00 and 20:00"


@pytest.mark.asyncio
async def test_end_before_start_is_a_validation_error(client, member):
    response = await client.post(
        f"{API}/bookings",
        json={"startTime": "2026-06-02T10:00:00+02:00", "endTime": "2026-06-02T09:00:00+02:00"},
        headers=auth_headers(member),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "End time must be after start time"


@pytest.mark.asyncio
async def test_malformed_datetime_returns_400(client, member):
    response = await client.post(
        f"{API}/bookings",
        json={"startTime": "tomorrow morning", "endTime": "2026-06-02T10:00:00+02:00"},
        headers=auth_headers(member),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_same_day_returns_409(client, member, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))

    response = await client.post(
        f"{API}/bookings",
        json={"startTime": "2026-06-02T15:00:00+02:00", "endTime": "2026-06-02T16:00:00+02:00"},
        headers=auth_headers(member),
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "You already have a booking on this day"


@pytest.mark.asyncio
async def test_list_bookings_hides_cancelled_and_other_users(client, member, other_member, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))
    await make_booking(member, local(2026, 6, 3, 9), status=BookingStatus.CANCELLED)
    await make_booking(other_member, local(2026, 6, 2, 9))

    response = await client.get(f"{API}/bookings", headers=auth_headers(member))
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["userId"] == member.id

    forbidden = await client.get(
        f"{API}/bookings", params={"userId": other_member.id}, headers=auth_headers(member)
    )
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_admin_lists_any_user(client, member, admin, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))

    response = await client.get(
        f"{API}/bookings", params={"userId": member.id}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["userName"] == "Member Test"
    assert data[0]["userEmail"] == "member@test.com"


@pytest.mark.asyncio
async def test_admin_without_filters_lists_own_bookings(client, member, admin, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))
    own = await make_booking(admin, local(2026, 6, 3, 9))

    response = await client.get(f"{API}/bookings", headers=auth_headers(admin))
    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [own.id]


@pytest.mark.asyncio
async def test_admin_with_date_range_lists_every_user(client, member, other_member, admin, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))
    await make_booking(other_member, local(2026, 6, 2, 10))
    await make_booking(member, local(2026, 6, 9, 9))

    response = await client.get(
        f"{API}/bookings",
        params={"startDate": "2026-06-01T00:00:00+02:00", "endDate": "2026-06-07T23:59:59+02:00"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert sorted(b["userEmail"] for b in response.json()) == ["member@test.com", "other@test.com"]


@pytest.mark.asyncio
async def test_patch_notes_on_cancelled_booking_is_persisted(client, session_factory, member, make_booking):
    booking = await make_booking(member, local(2026, 6, 2, 9), status=BookingStatus.CANCELLED)

    response = await client.patch(
        f"{API}/bookings/{booking.id}",
        json={"status": "CANCELLED", "notes": "injured, skipping"},
        headers=auth_headers(member),
    )
    assert response.status_code == 200
    assert response.json()["notes"] == "injured, skipping"

    async with session_factory() as fresh:
        stored = await fresh.get(Booking, booking.id)
        assert stored.notes == "injured, skipping"


@pytest.mark.asyncio
async def test_get_booking_of_other_user_forbidden(client, member, other_member, make_booking):
    booking = await make_booking(member, local(2026, 6, 2, 9))

    response = await client.get(f"{API}/bookings/{booking.id}", headers=auth_headers(other_member))
    assert response.status_code == 403

    missing = await client.get(f"{API}/bookings/does-not-exist", headers=auth_headers(member))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_patch_reschedules_booking(client, member, make_booking):
    booking = await make_booking(member, local(2026, 6, 2, 9))

    response = await client.patch(
        f"{API}/bookings/{booking.id}",
        json={"startTime": "2026-06-04T18:00:00+02:00", "endTime": "2026-06-04T19:00:00+02:00"},
        headers=auth_headers(member),
    )
    assert response.status_code == 200
    assert parse(response.json()["startTime"]) == local(2026, 6, 4, 18)


@pytest.mark.asyncio
async def test_patch_by_other_user_forbidden(client, member, other_member, make_booking):
    booking = await make_booking(member, local(2026, 6, 2, 9))

    response = await client.patch(
        f"{API}/bookings/{booking.id}", json={"notes": "hijack"}, headers=auth_headers(other_member)
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "You can only edit your own bookings"


@pytest.mark.asyncio
async def test_delete_cancels_booking(client, member, make_booking):
    booking = await make_booking(member, local(2026, 6, 2, 9))

    response = await client.delete(f"{API}/bookings/{booking.id}", headers=auth_headers(member))
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"


@pytest.mark.asyncio
async def test_cancel_all_returns_deleted_count(client, member, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))
    await make_booking(member, local(2026, 6, 3, 9))

    response = await client.delete(f"{API}/bookings/user/{member.id}", headers=auth_headers(member))
    assert response.status_code == 200
    assert response.json() == {"deletedCount": 2}


@pytest.mark.asyncio
async def test_mark_completed_requires_admin(client, member, admin, make_booking):
    await make_booking(member, NOW - timedelta(hours=2))

    forbidden = await client.post(f"{API}/bookings/mark-completed", headers=auth_headers(member))
    assert forbidden.status_code == 403

    response = await client.post(f"{API}/bookings/mark-completed", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json() == {"completedCount": 1}


@pytest.mark.asyncio
async def test_week_count(client, member, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))
    await make_booking(member, local(2026, 6, 9, 9))

    response = await client.get(f"{API}/bookings/week-count", headers=auth_headers(member))
    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["weeklyLimit"] == 3

    next_week = await client.get(
        f"{API}/bookings/week-count", params={"week": "2026-06-10"}, headers=auth_headers(member)
    )
    assert next_week.json()["count"] == 1


@pytest.mark.asyncio
async def test_missing_this_week(client, member, other_member, admin, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))

    response = await client.get(f"{API}/bookings/missing-this-week", headers=auth_headers(admin))
    assert response.status_code == 200
    assert [u["id"] for u in response.json()] == [other_member.id]


@pytest.mark.asyncio
async def test_users_me(client, member):
    response = await client.get(f"{API}/users/me", headers=auth_headers(member))
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "member@test.com"
    assert data["weeklyBookingLimit"] == 3


@pytest.mark.asyncio
async def test_booking_stats(client, member, other_member, make_booking):
    await make_booking(member, local(2026, 6, 2, 9))

    response = await client.get(f"{API}/users/{member.id}/booking-stats", headers=auth_headers(member))
    assert response.status_code == 200
    assert response.json()["upcomingBookings"] == 1

    forbidden = await client.get(
        f"{API}/users/{member.id}/booking-stats", headers=auth_headers(other_member)
    )
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_update_booking_limit(client, member, admin):
    forbidden = await client.patch(
        f"{API}/users/{member.id}/booking-limit",
        json={"weeklyBookingLimit": 5},
        headers=auth_headers(member),
    )
    assert forbidden.status_code == 403

    response = await client.patch(
        f"{API}/users/{member.id}/booking-limit",
        json={"weeklyBookingLimit": 5},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["weeklyBookingLimit"] == 5

    invalid = await client.patch(
        f"{API}/users/{member.id}/booking-limit",
        json={"weeklyBookingLimit": 11},
        headers=auth_headers(admin),
    )
    assert invalid.status_code == 400
