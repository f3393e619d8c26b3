"""
Booking endpoints with concurrency-safe seat reservation.
"""

import time

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from seatify.api.deps import get_clock
from seatify.core.clock import Clock
from seatify.core.exceptions import SeatifyError
from seatify.core.logging import get_logger
from seatify.core.metrics import booking_latency, record_booking_attempt, record_collaborator_failure
from seatify.core.security import get_current_user_id
from seatify.db.session import get_db
from seatify.models.booking import Booking
from seatify.schemas.booking import (
    AttendanceStatsResponse,
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
)
from seatify.services.booking_service import (
    cancel_booking,
    create_booking,
    get_booking,
    get_user_attendance_stats,
    get_user_bookings,
)
from seatify.services.cache_service import invalidate_event_cache
from seatify.services.collaborators import get_asset_store, get_identity_directory, get_notifier
from seatify.services.interfaces import (
    AssetStore,
    BookingNotice,
    BookingNotifier,
    IdentityDirectory,
    ResolvedUser,
)
from seatify.services.qr_service import attach_qr_image

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


async def _notify(notifier: BookingNotifier, notice: BookingNotice) -> None:
    """Fire-and-forget confirmation; the booking is already committed."""
    try:
        await notifier.notify_booking_created(notice)
    except Exception as e:
        record_collaborator_failure("notifier")
        logger.warning("booking_notification_failed", booking_id=notice.booking_id, error=str(e))


def _notice(booking: Booking, user: ResolvedUser) -> BookingNotice:
    return BookingNotice(
        booking_id=booking.id,
        user_id=user.id,
        user_full_name=user.full_name,
        user_email=user.email,
        event_id=booking.event_id,
        event_name=booking.event.name,
        event_location=booking.event.location,
        start_time=booking.event.start_time,
        end_time=booking.event.end_time,
        seat_label=booking.seat.label,
        image_url=booking.qr_code_url,
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    background_tasks: BackgroundTasks,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    identity: IdentityDirectory = Depends(get_identity_directory),
    asset_store: AssetStore = Depends(get_asset_store),
    notifier: BookingNotifier = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
):
    """
    Reserve a seat for an event.

    The seat claim and the booking insert commit together. Only then is the
    QR image hosted and the confirmation dispatched; neither can undo the
    booking.
    """
    started = time.perf_counter()
    try:
        booking = await create_booking(
            db,
            user_id,
            booking_data.event_id,
            booking_data.seat_id,
            identity=identity,
            clock=clock,
        )
    except SeatifyError as e:
        record_booking_attempt(e.code.lower())
        raise
    await db.commit()
    booking_latency.observe(time.perf_counter() - started)
    record_booking_attempt("success")

    await attach_qr_image(db, booking, asset_store)
    await invalidate_event_cache()

    user = await identity.resolve_user(db, user_id)
    if user is not None:
        background_tasks.add_task(_notify, notifier, _notice(booking, user))

    return BookingResponse.from_booking(booking)


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """All bookings of the authenticated user, newest first."""
    bookings = await get_user_bookings(db, user_id)
    return [BookingResponse.from_booking(b) for b in bookings]


@router.get("/stats", response_model=AttendanceStatsResponse)
async def user_attendance_stats(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """How many booked events the user actually attended."""
    return await get_user_attendance_stats(db, user_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking(db, booking_id, user_id)
    return BookingResponse.from_booking(booking)


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an unused booking and release the seat."""
    booking = await cancel_booking(db, booking_id, user_id)
    await db.commit()
    await invalidate_event_cache()
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
    )
