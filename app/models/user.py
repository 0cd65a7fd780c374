from sqlalchemy import Column, Integer, String, Text, Enum, CheckConstraint
from sqlalchemy.orm import relationship
import enum
import uuid

from app.db.base_class import Base
from app.db.types import UTCDateTime
from app.core.config import get_settings
from app.core.timezone_utils import utc_now


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"  # Gestiona usuarios y reservas de cualquier miembro
    USER = "USER"    # Miembro regular


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.USER)
    notes = Column(Text, nullable=True)

    # Número máximo de reservas activas por semana (lunes a domingo)
    weekly_booking_limit = Column(
        Integer,
        nullable=False,
        default=lambda: get_settings().DEFAULT_WEEKLY_BOOKING_LIMIT
    )

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)

    bookings = relationship("Booking", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            'weekly_booking_limit >= 1 AND weekly_booking_limit <= 10',
            name='check_weekly_booking_limit_range'
        ),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
