from app.models.user import User, UserRole
from app.models.booking import Booking, BookingStatus
