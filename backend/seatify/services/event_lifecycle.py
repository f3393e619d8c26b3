"""
Event lifecycle scheduler.

Keeps Event.status in step with the wall clock:

    UPCOMING -> ONGOING    when start_time <= now < end_time
    UPCOMING -> FINISHED   when end_time <= now  (window elapsed between ticks)
    ONGOING  -> FINISHED   when end_time <= now
    CANCELLED              never touched

Runs as an asyncio task inside the API process, one tick every
SCHEDULER_INTERVAL_SECONDS. Each event is updated in its own short
transaction with a compare-and-swap on the status it was read with, so:
  - one failing event does not block the rest of the tick
  - a concurrent external CANCELLED is never overwritten
  - no booking-level locks are held; booking creation re-validates status
    inside its own claim statement
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seatify.core.clock import Clock, utc_now
from seatify.core.logging import get_logger
from seatify.core.metrics import record_transition, scheduler_failures
from seatify.models.event import Event, EventStatus
from seatify.services.cache_service import invalidate_event_cache

logger = get_logger(__name__)

ACTIVE_STATUSES = (EventStatus.UPCOMING, EventStatus.ONGOING)


def next_status(
    status: EventStatus,
    start_time: datetime,
    end_time: datetime,
    now: datetime,
) -> Optional[EventStatus]:
    """Status the event should move to at `now`, or None to leave it alone."""
    if status not in ACTIVE_STATUSES:
        return None
    if end_time <= now:
        return EventStatus.FINISHED
    if status == EventStatus.UPCOMING and start_time <= now:
        return EventStatus.ONGOING
    return None


@dataclass
class TickReport:
    ongoing: int = 0
    finished: int = 0
    failed: int = 0

    @property
    def changed(self) -> int:
        return self.ongoing + self.finished


class EventLifecycleScheduler:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: float = 60.0,
        clock: Clock = utc_now,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    async def _due_events(self, now: datetime) -> list[tuple[int, EventStatus, EventStatus]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Event.id, Event.status, Event.start_time, Event.end_time)
                .where(Event.status.in_(ACTIVE_STATUSES), Event.start_time <= now)
                .order_by(Event.id)
            )
            rows = result.all()
            await session.rollback()

        due = []
        for event_id, status, start_time, end_time in rows:
            target = next_status(status, start_time, end_time, now)
            if target is not None:
                due.append((event_id, status, target))
        return due

    async def _transition(self, event_id: int, current: EventStatus, target: EventStatus) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Event)
                    .where(Event.id == event_id, Event.status == current)
                    .values(status=target)
                    .execution_options(synchronize_session=False)
                )
        return result.rowcount == 1

    async def tick(self) -> TickReport:
        """Apply every transition that is due now. Never raises for a single event."""
        now = self.clock()
        report = TickReport()

        for event_id, current, target in await self._due_events(now):
            try:
                applied = await self._transition(event_id, current, target)
            except Exception:
                report.failed += 1
                scheduler_failures.inc()
                logger.exception(
                    "event_status_update_failed",
                    event_id=event_id,
                    from_status=current.value,
                    to_status=target.value,
                )
                continue

            if not applied:
                # Someone else moved it first (e.g. cancelled); re-evaluated next tick.
                logger.info("event_status_changed_concurrently", event_id=event_id)
                continue

            record_transition(current.value, target.value)
            if target == EventStatus.ONGOING:
                report.ongoing += 1
            else:
                report.finished += 1
            logger.info(
                "event_status_changed",
                event_id=event_id,
                from_status=current.value,
                to_status=target.value,
            )

        if report.changed:
            await invalidate_event_cache()
            logger.info(
                "event_statuses_updated",
                ongoing=report.ongoing,
                finished=report.finished,
                failed=report.failed,
            )
        return report

    async def run_forever(self) -> None:
        logger.info("event_scheduler_started", interval_seconds=self.interval_seconds)
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Whole tick failed (e.g. database down); try again next interval.
                logger.exception("event_scheduler_tick_failed")
            await asyncio.sleep(self.interval_seconds)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="event-lifecycle-scheduler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("event_scheduler_stopped")
