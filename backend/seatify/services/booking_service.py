"""
Booking service: exclusive seat assignment and booking lifecycle.

CONCURRENCY STRATEGY: Conditional Updates inside the Request Transaction
========================================================================

Problem:
  Two users tap the same seat at the same moment. Both read is_available=true,
  both write is_available=false, both get a booking. Result: double booking.
  Separately, the lifecycle scheduler may flip the event to ONGOING between
  our status check and our write.

Solution:
  1. The seat claim is ONE conditional statement:

       UPDATE seats SET is_available = false
       WHERE id = :seat AND event_id = :event AND is_available = true
         AND EXISTS (SELECT 1 FROM events
                     WHERE id = :event AND status = 'UPCOMING' AND start_time > :now)

     rowcount == 0 means the seat was taken or the admission window closed
     while we were deciding. The status check that matters is this one, made
     in the same statement as the claim, not the read a few lines earlier.
  2. The booking INSERT runs in the same transaction. A partial unique index
     on (event_id, user_id) over live bookings rejects a second live booking
     for the same user, even when both requests pass the pre-checks.
     IntegrityError -> rollback (which also releases the seat) -> 409.
  3. On PostgreSQL the event row is read FOR SHARE, so the scheduler's status
     write waits for an in-flight booking rather than interleaving with it.

  The pre-check reads exist to report the right error in the right order;
  correctness never depends on them.

Cancellation mirrors this: the status flip is a compare-and-swap on
status = 'BOOKED' and the seat is released in the same transaction.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, NamedTuple, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from seatify.core.clock import Clock, utc_now
from seatify.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    SeatifyError,
)
from seatify.core.logging import get_logger
from seatify.core.metrics import booking_cancellations, cas_retries
from seatify.models.booking import Booking, BookingStatus
from seatify.models.event import Event, EventStatus
from seatify.models.seat import Seat
from seatify.services import token_codec
from seatify.services.interfaces import IdentityDirectory, ResolvedUser

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Admission checks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BookingRejection:
    kind: type
    reason: str
    message: str

    def to_error(self) -> SeatifyError:
        return self.kind(self.message, reason=self.reason)


@dataclass
class BookingContext:
    user: Optional[ResolvedUser]
    event: Optional[Event]
    seat: Optional[Seat]
    has_live_booking: bool
    now: datetime


class BookingCheck(NamedTuple):
    name: str
    passes: Callable[[BookingContext], bool]
    rejection: BookingRejection


# Order matters: the first failing check decides what the caller is told.
BOOKING_CHECKS = (
    BookingCheck(
        "user_exists",
        lambda ctx: ctx.user is not None,
        BookingRejection(NotFoundError, "user_not_found", "User not found"),
    ),
    BookingCheck(
        "event_exists",
        lambda ctx: ctx.event is not None,
        BookingRejection(NotFoundError, "event_not_found", "Event not found"),
    ),
    BookingCheck(
        "event_open",
        lambda ctx: ctx.event.status == EventStatus.UPCOMING,
        BookingRejection(ConflictError, "event_not_open", "Event is not available for booking"),
    ),
    BookingCheck(
        "event_not_started",
        lambda ctx: ctx.event.start_time > ctx.now,
        BookingRejection(ConflictError, "event_started", "Event has already started"),
    ),
    BookingCheck(
        "no_live_booking",
        lambda ctx: not ctx.has_live_booking,
        BookingRejection(ConflictError, "duplicate_booking", "You already have a booking for this event"),
    ),
    BookingCheck(
        "seat_available",
        lambda ctx: ctx.seat is not None and ctx.seat.is_available,
        BookingRejection(ConflictError, "seat_unavailable", "Seat is not available"),
    ),
)

REJECTIONS = {check.name: check.rejection for check in BOOKING_CHECKS}


def first_rejection(ctx: BookingContext) -> Optional[BookingRejection]:
    for check in BOOKING_CHECKS:
        if not check.passes(ctx):
            return check.rejection
    return None


def _is_open_for_booking(status: EventStatus, start_time: datetime, now: datetime) -> bool:
    return status == EventStatus.UPCOMING and start_time > now


# ---------------------------------------------------------------------------
# Create / cancel
# ---------------------------------------------------------------------------

async def create_booking(
    db: AsyncSession,
    user_id: int,
    event_id: int,
    seat_id: int,
    *,
    identity: IdentityDirectory,
    clock: Clock = utc_now,
) -> Booking:
    """
    Reserve one seat for one user.
    The caller owns the transaction; everything here is one atomic unit.
    """
    now = clock()

    user = await identity.resolve_user(db, user_id)

    event = (
        await db.execute(
            select(Event).where(Event.id == event_id).with_for_update(read=True)
        )
    ).scalar_one_or_none()

    seat = (
        await db.execute(select(Seat).where(Seat.id == seat_id, Seat.event_id == event_id))
    ).scalar_one_or_none()

    live_booking_id = (
        await db.execute(
            select(Booking.id)
            .where(
                Booking.user_id == user_id,
                Booking.event_id == event_id,
                Booking.status != BookingStatus.CANCELLED,
            )
            .limit(1)
        )
    ).scalar_one_or_none()

    rejection = first_rejection(
        BookingContext(
            user=user,
            event=event,
            seat=seat,
            has_live_booking=live_booking_id is not None,
            now=now,
        )
    )
    if rejection:
        logger.warning(
            "booking_rejected",
            reason=rejection.reason,
            user_id=user_id,
            event_id=event_id,
            seat_id=seat_id,
        )
        raise rejection.to_error()

    # Authoritative step: claim the seat only if the event is still open *now*.
    event_still_open = (
        select(Event.id)
        .where(
            Event.id == event_id,
            Event.status == EventStatus.UPCOMING,
            Event.start_time > now,
        )
        .exists()
    )
    claim = await db.execute(
        update(Seat)
        .where(
            Seat.id == seat_id,
            Seat.event_id == event_id,
            Seat.is_available.is_(True),
            event_still_open,
        )
        .values(is_available=False)
        .execution_options(synchronize_session=False)
    )

    if claim.rowcount == 0:
        cas_retries.labels(entity="seat").inc()
        current = (
            await db.execute(
                select(Event.status, Event.start_time).where(Event.id == event_id)
            )
        ).one()
        if current.status != EventStatus.UPCOMING:
            rejection = REJECTIONS["event_open"]
        elif not _is_open_for_booking(current.status, current.start_time, now):
            rejection = REJECTIONS["event_not_started"]
        else:
            rejection = REJECTIONS["seat_available"]
        logger.info(
            "seat_claim_lost",
            reason=rejection.reason,
            user_id=user_id,
            event_id=event_id,
            seat_id=seat_id,
        )
        raise rejection.to_error()

    set_committed_value(seat, "is_available", False)

    token = token_codec.encode(seat.id, user.id, event.id)
    booking = Booking(
        user_id=user.id,
        event_id=event.id,
        seat_id=seat.id,
        token=token,
        qr_code_data=token_codec.wrap_in_url(token),
        status=BookingStatus.BOOKED,
        booking_time=now,
    )
    db.add(booking)
    try:
        await db.flush()
    except IntegrityError:
        # Lost the race against a concurrent booking by the same user.
        # Rolling back also undoes the seat claim above.
        await db.rollback()
        logger.info("booking_duplicate_race", user_id=user_id, event_id=event_id)
        raise REJECTIONS["no_live_booking"].to_error()

    set_committed_value(booking, "event", event)
    set_committed_value(booking, "seat", seat)

    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user.id,
        event_id=event.id,
        seat=seat.label,
    )
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
) -> Booking:
    """
    Cancel a booking that has not been used yet and release its seat.
    Attended bookings (checked in or out) cannot be cancelled.
    """
    booking = await get_booking(db, booking_id, user_id, action="cancel")

    if booking.status != BookingStatus.BOOKED:
        raise ConflictError(
            "Only booked reservations can be cancelled",
            reason="not_cancellable",
        )

    flipped = await db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == BookingStatus.BOOKED)
        .values(status=BookingStatus.CANCELLED, version=Booking.version + 1)
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount == 0:
        # A scan checked the attendee in between our read and our write.
        cas_retries.labels(entity="booking").inc()
        raise ConflictError(
            "Only booked reservations can be cancelled",
            reason="not_cancellable",
        )

    await db.execute(
        update(Seat)
        .where(Seat.id == booking.seat_id)
        .values(is_available=True)
        .execution_options(synchronize_session=False)
    )

    await db.refresh(booking, attribute_names=["status", "version"])
    set_committed_value(booking.seat, "is_available", True)
    booking_cancellations.inc()

    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        user_id=user_id,
        event_id=booking.event_id,
        seat_id=booking.seat_id,
    )
    return booking


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _with_display_fields(query):
    return query.options(
        selectinload(Booking.event), selectinload(Booking.seat)
    ).execution_options(populate_existing=True)


async def get_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    action: str = "view",
) -> Booking:
    """Fetch a booking owned by `user_id`."""
    result = await db.execute(_with_display_fields(select(Booking).where(Booking.id == booking_id)))
    booking = result.scalar_one_or_none()

    if not booking:
        raise NotFoundError("Booking not found", reason="booking_not_found")

    if booking.user_id != user_id:
        logger.warning("booking_access_denied", booking_id=booking_id, user_id=user_id, action=action)
        raise ForbiddenError(f"You can only {action} your own bookings", reason="not_owner")

    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """All bookings of a user, newest first."""
    result = await db.execute(
        _with_display_fields(
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.booking_time.desc(), Booking.id.desc())
        )
    )
    return list(result.scalars().all())


async def get_user_attendance_stats(db: AsyncSession, user_id: int) -> dict:
    """
    Count bookings a user showed up for.
    Present means checked in at least once; cancelled bookings are excluded.
    """
    result = await db.execute(
        select(
            func.count(Booking.id),
            func.count(Booking.check_in_time),
        ).where(
            Booking.user_id == user_id,
            Booking.status != BookingStatus.CANCELLED,
        )
    )
    total, present = result.one()
    return {
        "total_participated": total,
        "present_count": present,
        "absent_count": total - present,
    }
