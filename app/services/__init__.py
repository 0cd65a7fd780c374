"""
Services module for GymBookingAPI app

Services implement the business logic of the application: booking admission,
cancellation rules and the slot legality policies.
"""

from app.services.booking import booking_service
from app.services.booking_policy import get_booking_policy
