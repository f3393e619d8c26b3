"""
Booking model representing a user's reservation of one seat.

Key design decisions:
- Partial unique index on (event_id, user_id) over live rows only: a user may
  rebook after cancelling, but never hold two live bookings for one event
- Status field allows cancellation without deleting records
- `version` column is the compare-and-swap counter for attendance toggles
"""

import enum

from sqlalchemy import Column, Integer, String, Enum, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from seatify.db.base import Base, TimestampMixin, UTCDateTime


class BookingStatus(str, enum.Enum):
    BOOKED = "BOOKED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"


LIVE_BOOKING_CLAUSE = text("status != 'CANCELLED'")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    seat_id = Column(Integer, ForeignKey("seats.id"), nullable=False, index=True)

    token = Column(String(255), nullable=False, unique=True)
    qr_code_data = Column(String(500), nullable=False)
    qr_code_url = Column(String(2048), nullable=True)

    status = Column(
        Enum(BookingStatus, name="booking_status", native_enum=False, length=20),
        nullable=False,
        default=BookingStatus.BOOKED,
    )
    booking_time = Column(UTCDateTime(), nullable=False)
    check_in_time = Column(UTCDateTime(), nullable=True)
    check_out_time = Column(UTCDateTime(), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    user = relationship("User", back_populates="bookings", lazy="raise")
    event = relationship("Event", back_populates="bookings", lazy="raise")
    seat = relationship("Seat", lazy="raise")
    attendance_log = relationship(
        "AttendanceLog",
        back_populates="booking",
        lazy="raise",
        order_by="AttendanceLog.id",
    )

    __table_args__ = (
        Index(
            "uq_live_booking_per_user_event",
            "event_id",
            "user_id",
            unique=True,
            postgresql_where=LIVE_BOOKING_CLAUSE,
            sqlite_where=LIVE_BOOKING_CLAUSE,
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
