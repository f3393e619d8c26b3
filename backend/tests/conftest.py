"""
Pytest fixtures for test database, client, clock and authentication.

Each test gets its own SQLite file database (BEGIN IMMEDIATE, same engine
setup as production SQLite) so concurrent sessions really contend for rows.
Fixtures write through short-lived sessions and commit before the test runs:
on SQLite an open transaction holds the write lock.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./seatify-test.db")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite:///./seatify-test.db")
os.environ["REDIS_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from seatify.main import app
from seatify.api.deps import get_clock
from seatify.api.routes.attendance import get_scan_session
from seatify.core.security import create_access_token
from seatify.db.base import Base
from seatify.db.session import build_engine, get_db
from seatify.models import Booking, BookingStatus, Event, EventStatus, Seat, User
from seatify.services import token_codec
from seatify.services.collaborators import get_asset_store, get_notifier
from seatify.services.interfaces import AssetStore, BookingNotice, BookingNotifier

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Clock pinned to a moment that tests move forward explicitly."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingAssetStore(AssetStore):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: list[tuple[int, str]] = []

    async def upload_image(self, data: bytes, category: str) -> str:
        if self.fail:
            raise ConnectionError("asset store unreachable")
        self.uploads.append((len(data), category))
        return f"https://assets.test/{category}/{len(self.uploads)}.png"


class RecordingNotifier(BookingNotifier):
    def __init__(self):
        self.notices: list[BookingNotice] = []

    async def notify_booking_created(self, notice: BookingNotice) -> None:
        self.notices.append(notice)


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema per test, dropped afterwards. TEST_DATABASE_URL overrides SQLite."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'seatify.db'}"
    engine = build_engine(url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock(NOW)


@pytest.fixture
def asset_store() -> RecordingAssetStore:
    return RecordingAssetStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def client(
    session_factory: async_sessionmaker,
    clock: SteppingClock,
    asset_store: RecordingAssetStore,
    notifier: RecordingNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the per-test database, clock and collaborators."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_scan_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scan_session] = override_get_scan_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_asset_store] = lambda: asset_store
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

async def add_user(session_factory, email: str, full_name: str = "Test User", is_active: bool = True) -> User:
    async with session_factory() as session:
        user = User(email=email, full_name=full_name, is_active=is_active)
        session.add(user)
        await session.commit()
        return user


async def add_event(
    session_factory,
    *,
    name: str = "Spring Concert",
    start_time: datetime,
    end_time: datetime,
    status: EventStatus = EventStatus.UPCOMING,
    rows: str = "A",
    seats_per_row: int = 3,
) -> tuple[Event, list[Seat]]:
    async with session_factory() as session:
        event = Event(
            name=name,
            description="Test event",
            location="Main Hall",
            start_time=start_time,
            end_time=end_time,
            capacity=len(rows) * seats_per_row,
            status=status,
        )
        session.add(event)
        await session.flush()
        seats = [
            Seat(event_id=event.id, seat_row=row, seat_number=n, is_available=True)
            for row in rows
            for n in range(1, seats_per_row + 1)
        ]
        session.add_all(seats)
        await session.commit()
        return event, seats


async def add_booking(
    session_factory,
    user: User,
    event: Event,
    seat: Seat,
    status=None,
    check_in_time: Optional[datetime] = None,
) -> Booking:
    """Insert a booking directly, bypassing the API (seat is marked taken)."""
    token = token_codec.encode(seat.id, user.id, event.id)
    async with session_factory() as session:
        booking = Booking(
            user_id=user.id,
            event_id=event.id,
            seat_id=seat.id,
            token=token,
            qr_code_data=token_codec.wrap_in_url(token),
            status=status or BookingStatus.BOOKED,
            booking_time=NOW - timedelta(days=1),
            check_in_time=check_in_time,
        )
        session.add(booking)
        db_seat = await session.get(Seat, seat.id)
        db_seat.is_available = False
        await session.commit()
        return booking


def interleave_before_update(session: AsyncSession, table_name: str, competing_write) -> list:
    """
    Run `competing_write(execute)` right before each UPDATE on `table_name`.

    Stands in for another transaction committing between a service's read and
    its conditional write. `execute` is the session's unpatched execute, so the
    competing statement lands on the same connection. Returns the list of
    intercepted statements.
    """
    execute = session.execute
    intercepted = []

    async def patched(statement, *args, **kwargs):
        if getattr(statement, "is_update", False) and statement.table.name == table_name:
            intercepted.append(statement)
            await competing_write(execute)
        return await execute(statement, *args, **kwargs)

    session.execute = patched
    return intercepted


@pytest_asyncio.fixture
async def test_user(session_factory) -> User:
    return await add_user(session_factory, "test@example.com", "Test User")


@pytest_asyncio.fixture
async def other_user(session_factory) -> User:
    return await add_user(session_factory, "other@example.com", "Other User")


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return headers_for(test_user)


@pytest_asyncio.fixture
async def upcoming_event(session_factory) -> tuple[Event, list[Seat]]:
    """Event starting in a week with seats A1-A3."""
    return await add_event(
        session_factory,
        start_time=NOW + timedelta(days=7),
        end_time=NOW + timedelta(days=7, hours=3),
    )


@pytest_asyncio.fixture
async def ongoing_event(session_factory) -> tuple[Event, list[Seat]]:
    return await add_event(
        session_factory,
        name="Live Workshop",
        start_time=NOW - timedelta(hours=1),
        end_time=NOW + timedelta(hours=1),
        status=EventStatus.ONGOING,
    )


@pytest_asyncio.fixture
async def finished_event(session_factory) -> tuple[Event, list[Seat]]:
    return await add_event(
        session_factory,
        name="Last Week's Talk",
        start_time=NOW - timedelta(days=7),
        end_time=NOW - timedelta(days=7) + timedelta(hours=2),
        status=EventStatus.FINISHED,
    )
