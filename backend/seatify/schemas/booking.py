"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from seatify.models.booking import Booking, BookingStatus


class BookingCreate(BaseModel):
    event_id: int = Field(..., gt=0)
    seat_id: int = Field(..., gt=0)


class BookingResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    event_name: str
    seat_id: int
    seat_row: str
    seat_number: int
    seat_label: str
    qr_code_data: str
    qr_code_url: Optional[str]
    status: BookingStatus
    booking_time: datetime
    check_in_time: Optional[datetime]
    check_out_time: Optional[datetime]

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            user_id=booking.user_id,
            event_id=booking.event_id,
            event_name=booking.event.name,
            seat_id=booking.seat_id,
            seat_row=booking.seat.seat_row,
            seat_number=booking.seat.seat_number,
            seat_label=booking.seat.label,
            qr_code_data=booking.qr_code_data,
            qr_code_url=booking.qr_code_url,
            status=booking.status,
            booking_time=booking.booking_time,
            check_in_time=booking.check_in_time,
            check_out_time=booking.check_out_time,
        )


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: BookingStatus


class AttendanceStatsResponse(BaseModel):
    total_participated: int
    present_count: int
    absent_count: int
