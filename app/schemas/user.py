from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from app.models.user import UserRole


class CamelModel(BaseModel):
    """Modelo base: JSON en camelCase, atributos en snake_case."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


# Propiedades compartidas
class UserBase(CamelModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.USER
    weekly_booking_limit: int = Field(3, ge=1, le=10)


# Propiedades para crear usuario (seed / scripts administrativos)
class UserCreate(UserBase):
    pass


class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    role: Optional[UserRole] = None
    weekly_booking_limit: Optional[int] = Field(None, ge=1, le=10)


# Propiedades para retornar a través de API
class User(UserBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WeeklyLimitUpdate(CamelModel):
    weekly_booking_limit: int = Field(..., ge=1, le=10, description="Reservas permitidas por semana (1-10)")


class UserBookingStats(CamelModel):
    total_bookings: int
    completed_bookings: int
    cancelled_bookings: int
    upcoming_bookings: int
    current_week_bookings: int
    weekly_booking_limit: int


class UserWithoutBookings(CamelModel):
    id: str
    name: str
    email: EmailStr
    weekly_booking_limit: int
