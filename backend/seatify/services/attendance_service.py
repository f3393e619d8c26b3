"""
Attendance service: turns a scanned token into a check-in or check-out.

State machine per booking:

    BOOKED --scan--> CHECKED_IN --scan--> CHECKED_OUT --scan--> CHECKED_IN ...
    CANCELLED rejects every scan.

Scanning is a toggle on purpose, so scanning the same code twice is NOT
idempotent. When a check-out follows its check-in by less than the anomaly
window (5 s by default) the check-out is still recorded but flagged
`auto_corrected`: it was most likely a double tap, not a real visit.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Two scanners reading the same code at once must not both record a check-in.
Every transition is a conditional UPDATE on (id, version):

    UPDATE bookings SET status = :new, ..., version = version + 1
    WHERE id = :id AND version = :seen_version

rowcount == 0 means another scan won. We re-read the booking and plan the
transition again from the state the winner left behind, up to
MAX_RETRY_ATTEMPTS times. The log entry is inserted in the same transaction
as the status change.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from seatify.core.clock import Clock, utc_now
from seatify.core.config import get_settings
from seatify.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from seatify.core.logging import get_logger
from seatify.core.metrics import auto_corrected_checkouts, cas_retries
from seatify.models.attendance import AttendanceAction, AttendanceLog
from seatify.models.booking import Booking, BookingStatus
from seatify.services import token_codec

logger = get_logger(__name__)
settings = get_settings()


class ScanMode(str, enum.Enum):
    TOGGLE = "toggle"
    CHECKOUT_ONLY = "checkout"


@dataclass(frozen=True)
class Transition:
    action: AttendanceAction
    new_status: BookingStatus
    auto_corrected: bool = False


@dataclass(frozen=True)
class ScanResult:
    booking_id: int
    action: AttendanceAction
    status: BookingStatus
    message: str
    event_name: str
    seat_label: str
    timestamp: datetime
    auto_corrected: bool
    success: bool = True


def anomaly_window() -> timedelta:
    return timedelta(seconds=settings.ATTENDANCE_ANOMALY_SECONDS)


def plan_transition(
    status: BookingStatus,
    check_in_time: Optional[datetime],
    now: datetime,
    mode: ScanMode = ScanMode.TOGGLE,
    window: Optional[timedelta] = None,
) -> Transition:
    """Decide what a scan does to a booking in `status`. Pure function."""
    window = anomaly_window() if window is None else window

    if status == BookingStatus.CANCELLED:
        raise InvalidStateError("This booking has been cancelled", reason="cancelled")

    if mode == ScanMode.CHECKOUT_ONLY and status != BookingStatus.CHECKED_IN:
        raise InvalidStateError("You must check in before checking out", reason="not_checked_in")

    if status in (BookingStatus.BOOKED, BookingStatus.CHECKED_OUT):
        return Transition(AttendanceAction.CHECK_IN, BookingStatus.CHECKED_IN)

    if status == BookingStatus.CHECKED_IN:
        too_short = check_in_time is not None and now - check_in_time < window
        return Transition(AttendanceAction.CHECK_OUT, BookingStatus.CHECKED_OUT, auto_corrected=too_short)

    raise InvalidStateError(f"Unsupported booking status {status}", reason="unknown_status")


def describe(transition: Transition) -> str:
    if transition.action == AttendanceAction.CHECK_IN:
        return "Check-in successful"
    if transition.auto_corrected:
        seconds = settings.ATTENDANCE_ANOMALY_SECONDS
        return f"Checked out within {seconds} seconds of check-in; the check-in was marked as accidental"
    return "Check-out successful"


async def _load_booking(db: AsyncSession, token: token_codec.ScanToken) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.token == token.canonical,
            Booking.seat_id == token.seat_id,
            Booking.user_id == token.user_id,
            Booking.event_id == token.event_id,
        )
        .options(selectinload(Booking.event), selectinload(Booking.seat))
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found for this QR code", reason="booking_not_found")
    return booking


async def _apply(
    db: AsyncSession,
    raw: str,
    mode: ScanMode,
    clock: Clock,
) -> ScanResult:
    token = token_codec.decode(raw)

    for attempt in range(1, settings.MAX_RETRY_ATTEMPTS + 1):
        booking = await _load_booking(db, token)
        now = clock()
        transition = plan_transition(booking.status, booking.check_in_time, now, mode)

        values = {"status": transition.new_status, "version": Booking.version + 1}
        if transition.action == AttendanceAction.CHECK_IN:
            values["check_in_time"] = now
        else:
            values["check_out_time"] = now

        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.version == booking.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            cas_retries.labels(entity="booking").inc()
            logger.info(
                "scan_retry",
                booking_id=booking.id,
                attempt=attempt,
                reason="version_conflict",
            )
            continue

        db.add(
            AttendanceLog(
                booking_id=booking.id,
                action=transition.action,
                occurred_at=now,
                auto_corrected=transition.auto_corrected,
            )
        )
        await db.flush()

        if transition.auto_corrected:
            auto_corrected_checkouts.inc()

        logger.info(
            "scan_processed",
            booking_id=booking.id,
            mode=mode.value,
            action=transition.action.value,
            status=transition.new_status.value,
            auto_corrected=transition.auto_corrected,
        )
        return ScanResult(
            booking_id=booking.id,
            action=transition.action,
            status=transition.new_status,
            message=describe(transition),
            event_name=booking.event.name,
            seat_label=booking.seat.label,
            timestamp=now,
            auto_corrected=transition.auto_corrected,
        )

    raise ConflictError(
        "This QR code is being processed by another scanner, please scan again",
        reason="scan_contention",
    )


async def process_scan(db: AsyncSession, raw: str, *, clock: Clock = utc_now) -> ScanResult:
    """Toggle scan: check in if not present, check out if present."""
    return await _apply(db, raw, ScanMode.TOGGLE, clock)


async def process_checkout_only(db: AsyncSession, raw: str, *, clock: Clock = utc_now) -> ScanResult:
    """Explicit check-out: the booking must currently be checked in."""
    return await _apply(db, raw, ScanMode.CHECKOUT_ONLY, clock)
