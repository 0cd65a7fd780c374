from sqlalchemy import Column, String, Text, Enum, ForeignKey, Date, Index, CheckConstraint, text
from sqlalchemy.orm import relationship
from typing import Optional
import enum
import uuid

from app.db.base_class import Base
from app.db.types import UTCDateTime
from app.core.timezone_utils import utc_now


class BookingStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"  # Activa (estado inicial)
    CANCELLED = "CANCELLED"  # Cancelada; puede revivirse con una nueva reserva el mismo día
    COMPLETED = "COMPLETED"  # Terminal, la marca el scheduler cuando end_time ya pasó


# Solo una reserva no cancelada por usuario y día
ACTIVE_BOOKING_CONDITION = text("status <> 'CANCELLED'")


class Booking(Base):
    """Reserva de un slot de una hora en el gimnasio"""
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(UTCDateTime, nullable=False, index=True)
    end_time = Column(UTCDateTime, nullable=False, index=True)
    # Día del calendario de start_time en la zona horaria del gimnasio
    booking_date = Column(Date, nullable=False)
    status = Column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.CONFIRMED,
        index=True
    )
    notes = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = relationship("User", back_populates="bookings")

    __table_args__ = (
        CheckConstraint('end_time > start_time', name='check_booking_end_after_start'),
        Index(
            "uq_bookings_user_active_day",
            "user_id",
            "booking_date",
            unique=True,
            postgresql_where=ACTIVE_BOOKING_CONDITION,
            sqlite_where=ACTIVE_BOOKING_CONDITION,
        ),
        Index("ix_bookings_user_start", "user_id", "start_time"),
    )

    # Datos del dueño para el listado (requieren la relación user precargada)
    @property
    def user_name(self) -> Optional[str]:
        return self.user.name if self.user else None

    @property
    def user_email(self) -> Optional[str]:
        return self.user.email if self.user else None

    def __repr__(self) -> str:
        return f"<Booking {self.id} user={self.user_id} {self.start_time}-{self.end_time} {self.status}>"
