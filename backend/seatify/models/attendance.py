"""
Attendance log: one immutable row per check-in / check-out transition.
"""

import enum

from sqlalchemy import Column, Integer, Boolean, Enum, ForeignKey, event
from sqlalchemy.orm import relationship

from seatify.db.base import Base, UTCDateTime


class AttendanceAction(str, enum.Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


class AttendanceLog(Base):
    __tablename__ = "attendance_log"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    action = Column(
        Enum(AttendanceAction, name="attendance_action", native_enum=False, length=20),
        nullable=False,
    )
    occurred_at = Column(UTCDateTime(), nullable=False)
    auto_corrected = Column(Boolean, nullable=False, default=False)

    booking = relationship("Booking", back_populates="attendance_log", lazy="raise")

    def __repr__(self) -> str:
        return (
            f"<AttendanceLog(booking={self.booking_id}, action={self.action}, "
            f"auto_corrected={self.auto_corrected})>"
        )


@event.listens_for(AttendanceLog, "before_update")
@event.listens_for(AttendanceLog, "before_delete")
def _reject_mutation(mapper, connection, target):
    raise ValueError("attendance log entries are append-only")
