"""
Event model.

Key design decisions:
- `status` is written only by the lifecycle scheduler (and by the external
  event-management side for CANCELLED); booking logic only reads it
- Index on (status, start_time) serves the scheduler's per-tick scan
- CHECK constraint keeps start_time strictly before end_time
"""

import enum

from sqlalchemy import Column, Integer, String, Enum, Index, CheckConstraint
from sqlalchemy.orm import relationship

from seatify.db.base import Base, TimestampMixin, UTCDateTime


class EventStatus(str, enum.Enum):
    UPCOMING = "UPCOMING"
    ONGOING = "ONGOING"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    location = Column(String(255), nullable=True)
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    capacity = Column(Integer, nullable=False)
    status = Column(
        Enum(EventStatus, name="event_status", native_enum=False, length=20),
        nullable=False,
        default=EventStatus.UPCOMING,
    )

    seats = relationship("Seat", back_populates="event", lazy="raise")
    bookings = relationship("Booking", back_populates="event", lazy="raise")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_event_time_window"),
        CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        Index("ix_events_status_start", "status", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.name}, status={self.status})>"
