"""
Event browsing: read-only views over events and their seats.
Events are created and edited by the event-management side, not here.
"""

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from seatify.core.exceptions import NotFoundError
from seatify.core.logging import get_logger
from seatify.models.event import Event, EventStatus
from seatify.models.seat import Seat

logger = get_logger(__name__)


def _available_seats_subquery():
    return (
        select(func.count(Seat.id))
        .where(Seat.event_id == Event.id, Seat.is_available.is_(True))
        .correlate(Event)
        .scalar_subquery()
    )


async def get_event(db: AsyncSession, event_id: int) -> tuple[Event, int]:
    """Single event with its live count of available seats."""
    result = await db.execute(
        select(Event, _available_seats_subquery()).where(Event.id == event_id)
    )
    row = result.one_or_none()

    if not row:
        raise NotFoundError(f"Event {event_id} not found", reason="event_not_found")
    return row[0], row[1]


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    status: Optional[EventStatus] = None,
) -> tuple[list[tuple[Event, int]], int]:
    """
    List events with pagination, soonest first.
    Uses ix_events_status_start when filtering by status.
    """
    query = select(Event)
    if status is not None:
        query = query.where(Event.status == status)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    page_query = (
        query.add_columns(_available_seats_subquery())
        .order_by(Event.start_time.asc(), Event.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(page_query)
    return [(row[0], row[1]) for row in result.all()], total


async def list_seats(db: AsyncSession, event_id: int) -> list[Seat]:
    """Seat map of an event, ordered by row then number."""
    await get_event(db, event_id)
    result = await db.execute(
        select(Seat)
        .where(Seat.event_id == event_id)
        .order_by(Seat.seat_row.asc(), Seat.seat_number.asc())
    )
    return list(result.scalars().all())
