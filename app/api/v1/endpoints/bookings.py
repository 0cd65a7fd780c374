from typing import Any, List, Optional
from datetime import date, datetime
import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_admin
from app.db.session import get_async_db
from app.middleware.rate_limit import limiter, RATE_LIMITS
from app.models.booking import BookingStatus
from app.models.user import User
from app.schemas.booking import (
    Booking as BookingSchema,
    BookingCreate,
    BookingUpdate,
    BookingWithUser,
    CancelAllResponse,
    MarkCompletedResponse,
    WeeklyBookingCount,
)
from app.schemas.user import UserWithoutBookings
from app.services.booking import (
    AuthorizationError,
    BookingConflictError,
    BookingError,
    NotFoundError,
    ValidationError,
    booking_service,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_STATUS_CODES = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    BookingConflictError: status.HTTP_409_CONFLICT,
}


def booking_http_exception(error: BookingError) -> HTTPException:
    """Translate a booking service error into the matching HTTP error."""
    status_code = ERROR_STATUS_CODES.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=error.message)


@router.post("", response_model=BookingSchema, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["booking_write"])
async def create_booking(
    request: Request,
    booking_in: BookingCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """
    Create a Booking

    Books a one-hour slot for the authenticated user. If the user has a
    cancelled booking on the same day, that booking is revived instead of
    creating a new one.

    Args:
        booking_in (BookingCreate): Requested startTime, endTime and optional notes.

    Returns:
        BookingSchema: The confirmed booking.

    Raises:
        HTTPException 400: Slot outside the allowed hours, in the past or outside the booking window.
        HTTPException 404: User not found.
        HTTPException 409: Already booked that day or weekly limit reached.
    """
    try:
        return await booking_service.create_booking(db, user_id=current_user.id, booking_in=booking_in)
    except BookingError as e:
        raise booking_http_exception(e)


@router.get("", response_model=List[BookingWithUser])
async def list_bookings(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """
    List Bookings

    Regular users only see their own bookings. Admins see another
    user's bookings with `userId`, or every user's bookings with both
    `startDate` and `endDate`; otherwise they get their own. Each booking
    carries the owner's `userName` and `userEmail`. Cancelled bookings
    are omitted unless `status` is given.

    Raises:
        HTTPException 403: A regular user asked for another user's bookings.
    """
    try:
        return await booking_service.get_bookings(
            db,
            requester=current_user,
            user_id=user_id,
            status=booking_status,
            start_date=start_date,
            end_date=end_date,
            limit=limit
        )
    except BookingError as e:
        raise booking_http_exception(e)


@router.get("/week-count", response_model=WeeklyBookingCount)
async def get_week_count(
    user_id: Optional[str] = Query(None, alias="userId"),
    week: Optional[date] = Query(None, description="Any day of the week to inspect (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """
    Weekly Booking Count

    Number of non-cancelled bookings in the Monday-Sunday week, together with
    the user's weekly limit. Defaults to the current user and the current week.

    Raises:
        HTTPException 403: A regular user asked for another user's count.
        HTTPException 404: User not found.
    """
    target_id = user_id or current_user.id
    if target_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own bookings")

    try:
        return await booking_service.get_weekly_booking_count(db, user_id=target_id, week_of=week)
    except BookingError as e:
        raise booking_http_exception(e)


@router.get("/missing-this-week", response_model=List[UserWithoutBookings])
async def get_users_missing_this_week(
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_admin)
) -> Any:
    """
    Users Without Bookings This Week (Admin)

    Members with no non-cancelled booking in the current Monday-Sunday week.
    """
    return await booking_service.get_users_without_bookings_this_week(db)


@router.post("/mark-completed", response_model=MarkCompletedResponse)
@limiter.limit(RATE_LIMITS["admin_bulk"])
async def mark_completed(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(require_admin)
) -> Any:
    """
    Mark Past Bookings Completed (Admin)

    Forces one pass of the completion sweep: every confirmed booking whose
    end time has passed becomes COMPLETED.

    Returns:
        MarkCompletedResponse: `completedCount`, 0 when nothing had expired.
    """
    count = await booking_service.mark_past_bookings_completed(db)
    logger.info(f"Barrido manual lanzado por {current_user.id}: {count} reservas completadas")
    return MarkCompletedResponse(completed_count=count)


@router.delete("/user/{user_id}", response_model=CancelAllResponse)
@limiter.limit(RATE_LIMITS["admin_bulk"])
async def cancel_all_user_bookings(
    request: Request,
    user_id: str = Path(..., description="ID of the user whose bookings are cancelled"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """
    Cancel All Bookings of a User

    Cancels every non-cancelled booking of the user. Bookings are never
    physically deleted.

    Permissions:
        - The user themself or an admin.

    Returns:
        CancelAllResponse: `deletedCount` with the number of cancelled bookings.

    Raises:
        HTTPException 403: Requester is neither the user nor an admin.
    """
    try:
        count = await booking_service.cancel_all_bookings_for_user(
            db, user_id=user_id, requester=current_user
        )
    except BookingError as e:
        raise booking_http_exception(e)
    return CancelAllResponse(deleted_count=count)


@router.get("/{booking_id}", response_model=BookingSchema)
async def get_booking(
    booking_id: str = Path(..., description="ID of the booking"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """
    Get a Booking

    Raises:
        HTTPException 403: Booking belongs to another user.
        HTTPException 404: Booking not found.
    """
    try:
        return await booking_service.get_booking(db, booking_id=booking_id, requester=current_user)
    except BookingError as e:
        raise booking_http_exception(e)


@router.patch("/{booking_id}", response_model=BookingSchema)
@limiter.limit(RATE_LIMITS["booking_write"])
async def update_booking(
    request: Request,
    booking_in: BookingUpdate,
    booking_id: str = Path(..., description="ID of the booking"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """
    Update a Booking

    Reschedules the booking (startTime and endTime together), edits its notes
    or cancels it (`status: CANCELLED`). Regular users cannot reschedule less
    than 2 hours before the booking starts; admins bypass the cutoff and the
    same-day and weekly checks.

    Raises:
        HTTPException 400: Invalid slot, cutoff passed or unsupported status change.
        HTTPException 403: Booking belongs to another user.
        HTTPException 404: Booking not found.
        HTTPException 409: Already booked that day or weekly limit reached.
    """
    try:
        return await booking_service.update_booking(
            db, booking_id=booking_id, requester=current_user, booking_in=booking_in
        )
    except BookingError as e:
        raise booking_http_exception(e)


@router.delete("/{booking_id}", response_model=BookingSchema)
@limiter.limit(RATE_LIMITS["booking_write"])
async def cancel_booking(
    request: Request,
    booking_id: str = Path(..., description="ID of the booking"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user)
) -> Any:
    """
    Cancel a Booking

    Marks the booking as CANCELLED. The record is kept and can be revived by
    booking the same day again.

    Raises:
        HTTPException 400: Cancellation cutoff passed or booking already completed.
        HTTPException 403: Booking belongs to another user.
        HTTPException 404: Booking not found.
    """
    try:
        return await booking_service.cancel_booking(db, booking_id=booking_id, requester=current_user)
    except BookingError as e:
        raise booking_http_exception(e)
