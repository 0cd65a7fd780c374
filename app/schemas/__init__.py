from app.schemas.user import User, UserCreate, UserUpdate, WeeklyLimitUpdate, UserBookingStats, UserWithoutBookings
from app.schemas.booking import (
    Booking,
    BookingCreate,
    BookingUpdate,
    BookingWithUser,
    WeeklyBookingCount,
    CancelAllResponse,
    MarkCompletedResponse
)
