from seatify.models.user import User
from seatify.models.event import Event, EventStatus
from seatify.models.seat import Seat
from seatify.models.booking import Booking, BookingStatus
from seatify.models.attendance import AttendanceLog, AttendanceAction

__all__ = [
    "User",
    "Event", "EventStatus",
    "Seat",
    "Booking", "BookingStatus",
    "AttendanceLog", "AttendanceAction",
]
