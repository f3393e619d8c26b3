"""
Event browsing endpoints with Redis caching on list operations.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from seatify.db.session import get_db
from seatify.models.event import EventStatus
from seatify.schemas.event import EventListResponse, EventResponse, SeatResponse
from seatify.services.event_service import get_event, list_events, list_seats
from seatify.services.cache_service import get_cached_events, set_cached_events
from seatify.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[EventStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    List events with pagination, optionally filtered by lifecycle status.
    Pages are cached in Redis; bookings, cancellations and scheduler
    transitions invalidate them.
    """
    status_key = status.value if status else None
    cached = await get_cached_events(page, page_size, status_key)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    rows, total = await list_events(db, page, page_size, status)

    response_data = {
        "events": [EventResponse.from_event(e, available).model_dump(mode="json") for e, available in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }

    await set_cached_events(page, page_size, status_key, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Single event. Not cached: seat counts must be live."""
    event, available = await get_event(db, event_id)
    return EventResponse.from_event(event, available)


@router.get("/{event_id}/seats", response_model=list[SeatResponse])
async def list_seats_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Seat availability for picking a seat to book."""
    seats = await list_seats(db, event_id)
    return [SeatResponse.model_validate(seat) for seat in seats]
