"""
Pydantic schemas for event browsing responses.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from seatify.models.event import Event, EventStatus


class EventResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    location: Optional[str]
    start_time: datetime
    end_time: datetime
    capacity: int
    available_seats: int
    status: EventStatus

    @classmethod
    def from_event(cls, event: Event, available_seats: int) -> "EventResponse":
        return cls(
            id=event.id,
            name=event.name,
            description=event.description,
            location=event.location,
            start_time=event.start_time,
            end_time=event.end_time,
            capacity=event.capacity,
            available_seats=available_seats,
            status=event.status,
        )


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class SeatResponse(BaseModel):
    id: int
    seat_row: str
    seat_number: int
    label: str
    is_available: bool

    model_config = {"from_attributes": True}
