from fastapi import APIRouter

# Import routers from modules
from app.api.v1.endpoints import bookings, users

api_router = APIRouter()

# Bookings module
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])

# Users module
api_router.include_router(users.router, prefix="/users", tags=["users"])
