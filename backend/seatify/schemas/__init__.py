from seatify.schemas.event import EventResponse, EventListResponse, SeatResponse
from seatify.schemas.booking import (
    BookingCreate, BookingResponse, BookingCancelResponse, AttendanceStatsResponse,
)
from seatify.schemas.attendance import CheckInRequest, ScanResponse

__all__ = [
    "EventResponse", "EventListResponse", "SeatResponse",
    "BookingCreate", "BookingResponse", "BookingCancelResponse", "AttendanceStatsResponse",
    "CheckInRequest", "ScanResponse",
]
