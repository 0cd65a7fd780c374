from typing import Optional
from datetime import datetime
from pydantic import Field, model_validator

from app.models.booking import BookingStatus
from app.schemas.user import CamelModel


def _comparable(a: datetime, b: datetime) -> bool:
    # naive y aware no se comparan; el servicio los normaliza a UTC
    return (a.tzinfo is None) == (b.tzinfo is None)


class BookingCreate(CamelModel):
    start_time: datetime = Field(..., description="Inicio del slot (ISO-8601)")
    end_time: datetime = Field(..., description="Fin del slot (ISO-8601)")
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode='after')
    def check_end_after_start(self):
        if _comparable(self.start_time, self.end_time) and self.end_time <= self.start_time:
            raise ValueError('End time must be after start time')
        return self


class BookingUpdate(CamelModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)
    status: Optional[BookingStatus] = None

    @model_validator(mode='after')
    def check_times(self):
        if (
            self.start_time and self.end_time
            and _comparable(self.start_time, self.end_time)
            and self.end_time <= self.start_time
        ):
            raise ValueError('End time must be after start time')
        return self


class Booking(CamelModel):
    id: str
    user_id: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingWithUser(Booking):
    user_name: Optional[str] = None
    user_email: Optional[str] = None


class WeeklyBookingCount(CamelModel):
    count: int
    weekly_limit: int
    week_start: datetime
    week_end: datetime


class CancelAllResponse(CamelModel):
    deleted_count: int


class MarkCompletedResponse(CamelModel):
    completed_count: int
