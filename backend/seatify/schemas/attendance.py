"""
Pydantic schemas for scan requests and results.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from seatify.models.attendance import AttendanceAction
from seatify.models.booking import BookingStatus


class CheckInRequest(BaseModel):
    # Empty or oversized payloads are rejected by the decoder with the usual error body
    qr_code_data: str


class ScanResponse(BaseModel):
    success: bool
    message: str
    action: Optional[AttendanceAction] = None
    booking_id: Optional[int] = None
    status: Optional[BookingStatus] = None
    event_name: Optional[str] = None
    seat_label: Optional[str] = None
    timestamp: Optional[datetime] = None
    auto_corrected: bool = False

    model_config = {"from_attributes": True}
