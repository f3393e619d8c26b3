"""
Booking notification interface.
Delivery (email, SMS, push) is owned by an external service.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

import httpx

from seatify.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookingNotice:
    booking_id: int
    user_id: int
    user_full_name: str
    user_email: Optional[str]
    event_id: int
    event_name: str
    event_location: Optional[str]
    start_time: datetime
    end_time: datetime
    seat_label: str
    image_url: Optional[str]

    def to_payload(self) -> dict:
        payload = asdict(self)
        payload["start_time"] = self.start_time.isoformat()
        payload["end_time"] = self.end_time.isoformat()
        return payload


class BookingNotifier(ABC):
    """
    Interface for telling the attendee their booking went through.

    Implementations:
    - LoggingNotifier: records the notice in the application log
    - WebhookNotifier: POSTs the notice to a delivery service
    """

    @abstractmethod
    async def notify_booking_created(self, notice: BookingNotice) -> None:
        """
        Dispatch a booking confirmation. Runs after the booking is committed;
        raising here never affects the booking.
        """
        pass


class LoggingNotifier(BookingNotifier):

    async def notify_booking_created(self, notice: BookingNotice) -> None:
        logger.info(
            "booking_notification",
            booking_id=notice.booking_id,
            user_id=notice.user_id,
            event=notice.event_name,
            seat=notice.seat_label,
        )


class WebhookNotifier(BookingNotifier):

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    async def notify_booking_created(self, notice: BookingNotice) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.url,
                json={"type": "booking_created", "booking": notice.to_payload()},
            )
            response.raise_for_status()
