"""
User Endpoints

Profile of the authenticated user, booking statistics and the administrative
management of each member's weekly booking limit.
"""

from typing import Any
import logging

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.endpoints.bookings import booking_http_exception
from app.core.auth import get_current_user, require_admin
from app.db.session import get_async_db
from app.models.user import User
from app.schemas.user import User as UserSchema, UserBookingStats, WeeklyLimitUpdate
from app.services.booking import BookingError, booking_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/me", response_model=UserSchema, tags=["Profile"])
async def read_current_user(current_user: User = Depends(get_current_user)) -> Any:
    """
    Get the authenticated user's profile, including the weekly booking limit.
    """
    return current_user


@router.get("/{user_id}/booking-stats", response_model=UserBookingStats)
async def get_booking_stats(
    user_id: str = Path(..., description="ID of the user"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """
    Booking Statistics

    Totals per status, upcoming confirmed bookings and the current week's
    usage against the weekly limit.

    Permissions:
        - The user themself or an admin.

    Raises:
        HTTPException 403: Requester is neither the user nor an admin.
        HTTPException 404: User not found.
    """
    try:
        return await booking_service.get_user_booking_stats(db, user_id=user_id, requester=current_user)
    except BookingError as e:
        raise booking_http_exception(e)


@router.patch("/{user_id}/booking-limit", response_model=UserSchema)
async def update_booking_limit(
    limit_in: WeeklyLimitUpdate,
    user_id: str = Path(..., description="ID of the user"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_admin)
) -> Any:
    """
    Update Weekly Booking Limit (Admin)

    Args:
        limit_in (WeeklyLimitUpdate): New `weeklyBookingLimit`, between 1 and 10.

    Returns:
        UserSchema: The updated user.

    Raises:
        HTTPException 403: Requester is not an admin.
        HTTPException 404: User not found.
        HTTPException 422: Limit outside 1-10.
    """
    try:
        return await booking_service.update_weekly_limit(
            db, user_id=user_id, limit=limit_in.weekly_booking_limit
        )
    except BookingError as e:
        raise booking_http_exception(e)
