"""
Tests for booking endpoints: seat claims, window guard, cancellation, stats.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from conftest import (
    NOW,
    RecordingAssetStore,
    add_booking,
    add_event,
    add_user,
    headers_for,
    interleave_before_update,
)
from seatify.core.security import create_access_token
from seatify.main import app
from seatify.models import Booking, BookingStatus, Seat
from seatify.services import token_codec
from seatify.services.collaborators import get_asset_store
from seatify.services.qr_service import attach_qr_image

UNKNOWN_USER_HEADERS = {"Authorization": f"Bearer {create_access_token(data={'sub': '9999'})}"}


async def _book(client: AsyncClient, headers: dict, event_id: int, seat_id: int):
    return await client.post(
        "/api/v1/bookings/",
        json={"event_id": event_id, "seat_id": seat_id},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_book_seat(client: AsyncClient, auth_headers, test_user, upcoming_event, asset_store, notifier):
    """Successful booking takes the seat and returns a scannable token."""
    event, seats = upcoming_event

    response = await _book(client, auth_headers, event.id, seats[0].id)

    assert response.status_code == 201
    data = response.json()
    assert data["event_id"] == event.id
    assert data["seat_label"] == "A1"
    assert data["status"] == "BOOKED"
    assert data["qr_code_url"] == "https://assets.test/qr-codes/1.png"

    token = token_codec.decode(data["qr_code_data"])
    assert (token.seat_id, token.user_id, token.event_id) == (seats[0].id, test_user.id, event.id)

    assert len(asset_store.uploads) == 1
    assert [n.booking_id for n in notifier.notices] == [data["id"]]
    assert notifier.notices[0].user_full_name == "Test User"

    event_response = await client.get(f"/api/v1/events/{event.id}")
    assert event_response.json()["available_seats"] == 2


@pytest.mark.asyncio
async def test_book_seat_unauthenticated(client: AsyncClient, upcoming_event):
    event, seats = upcoming_event
    response = await client.post(
        "/api/v1/bookings/",
        json={"event_id": event.id, "seat_id": seats[0].id},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_seat_with_invalid_token(client: AsyncClient, upcoming_event):
    event, seats = upcoming_event
    response = await _book(client, {"Authorization": "Bearer not-a-jwt"}, event.id, seats[0].id)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_seat_unknown_user(client: AsyncClient, upcoming_event):
    event, seats = upcoming_event
    response = await _book(client, UNKNOWN_USER_HEADERS, event.id, seats[0].id)

    assert response.status_code == 404
    assert response.json() == {"success": False, "code": "NOT_FOUND", "message": "User not found"}


@pytest.mark.asyncio
async def test_book_seat_inactive_user(client: AsyncClient, session_factory, upcoming_event):
    event, seats = upcoming_event
    user = await add_user(session_factory, "gone@example.com", is_active=False)

    response = await _book(client, headers_for(user), event.id, seats[0].id)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_book_seat_unknown_event(client: AsyncClient, auth_headers):
    response = await _book(client, auth_headers, 9999, 1)
    assert response.status_code == 404
    assert response.json()["message"] == "Event not found"


@pytest.mark.asyncio
async def test_book_seat_of_another_event(client: AsyncClient, session_factory, auth_headers, upcoming_event):
    """A seat id that does not belong to the event is treated as unavailable."""
    event, _ = upcoming_event
    _, other_seats = await add_event(
        session_factory,
        name="Other Event",
        start_time=NOW + timedelta(days=3),
        end_time=NOW + timedelta(days=3, hours=1),
    )

    response = await _book(client, auth_headers, event.id, other_seats[0].id)
    assert response.status_code == 409
    assert response.json()["message"] == "Seat is not available"


@pytest.mark.asyncio
async def test_book_taken_seat(client: AsyncClient, session_factory, auth_headers, other_user, upcoming_event):
    event, seats = upcoming_event
    await add_booking(session_factory, other_user, event, seats[0])

    response = await _book(client, auth_headers, event.id, seats[0].id)
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_duplicate_booking(client: AsyncClient, auth_headers, upcoming_event):
    """Same user booking the same event twice returns 409, even for another seat."""
    event, seats = upcoming_event

    response1 = await _book(client, auth_headers, event.id, seats[0].id)
    assert response1.status_code == 201

    response2 = await _book(client, auth_headers, event.id, seats[1].id)
    assert response2.status_code == 409
    assert response2.json()["message"] == "You already have a booking for this event"


@pytest.mark.asyncio
async def test_booking_rejected_for_ongoing_event(client: AsyncClient, auth_headers, ongoing_event):
    """Events that are ONGOING or FINISHED reject bookings."""
    event, seats = ongoing_event

    response = await _book(client, auth_headers, event.id, seats[0].id)
    assert response.status_code == 409
    assert response.json()["message"] == "Event is not available for booking"


@pytest.mark.asyncio
async def test_booking_rejected_for_finished_event(client: AsyncClient, auth_headers, finished_event):
    event, seats = finished_event

    response = await _book(client, auth_headers, event.id, seats[0].id)
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_booking_rejected_once_start_time_passed(client: AsyncClient, session_factory, auth_headers):
    """The scheduler has not run yet, but the event already started."""
    event, seats = await add_event(
        session_factory,
        start_time=NOW - timedelta(minutes=1),
        end_time=NOW + timedelta(hours=2),
    )

    response = await _book(client, auth_headers, event.id, seats[0].id)
    assert response.status_code == 409
    assert response.json()["message"] == "Event has already started"


@pytest.mark.asyncio
async def test_booking_check_order_event_before_duplicate(
    client: AsyncClient, session_factory, auth_headers, test_user, ongoing_event
):
    """An event that is closed is reported before the user's existing booking."""
    event, seats = ongoing_event
    await add_booking(session_factory, test_user, event, seats[0])

    response = await _book(client, auth_headers, event.id, seats[1].id)
    assert response.json()["message"] == "Event is not available for booking"


@pytest.mark.asyncio
async def test_booking_survives_asset_store_failure(client: AsyncClient, auth_headers, upcoming_event, notifier):
    event, seats = upcoming_event
    app.dependency_overrides[get_asset_store] = lambda: RecordingAssetStore(fail=True)

    response = await _book(client, auth_headers, event.id, seats[0].id)

    assert response.status_code == 201
    assert response.json()["qr_code_url"] is None
    assert len(notifier.notices) == 1


@pytest.mark.asyncio
async def test_qr_image_url_is_stored(session_factory, test_user, upcoming_event, asset_store):
    event, seats = upcoming_event
    booking = await add_booking(session_factory, test_user, event, seats[0])

    async with session_factory() as session:
        url = await attach_qr_image(session, booking, asset_store)
        await session.commit()

    assert url == "https://assets.test/qr-codes/1.png"
    async with session_factory() as session:
        assert (await session.get(Booking, booking.id)).qr_code_url == url


@pytest.mark.asyncio
async def test_qr_image_url_write_failure_is_swallowed(session_factory, test_user, upcoming_event, asset_store):
    """The booking is already committed; losing the URL write must not surface as an error."""
    event, seats = upcoming_event
    booking = await add_booking(session_factory, test_user, event, seats[0])

    async def database_unavailable(execute):
        raise OperationalError("UPDATE bookings", {}, Exception("database is locked"))

    async with session_factory() as session:
        interleave_before_update(session, "bookings", database_unavailable)
        url = await attach_qr_image(session, booking, asset_store)
        # The request transaction is still usable afterwards
        await session.commit()

    assert url is None
    assert booking.qr_code_url is None
    assert len(asset_store.uploads) == 1
    async with session_factory() as session:
        stored = await session.get(Booking, booking.id)
    assert stored.status == BookingStatus.BOOKED
    assert stored.qr_code_url is None


@pytest.mark.asyncio
async def test_cancel_then_seat_available(client: AsyncClient, session_factory, auth_headers, other_user, upcoming_event):
    event, seats = upcoming_event
    booking_id = (await _book(client, auth_headers, event.id, seats[0].id)).json()["id"]

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"

    async with session_factory() as session:
        seat = await session.get(Seat, seats[0].id)
        assert seat.is_available is True

    # The released seat can be claimed again by someone else
    rebook = await _book(client, headers_for(other_user), event.id, seats[0].id)
    assert rebook.status_code == 201


@pytest.mark.asyncio
async def test_rebook_after_cancel(client: AsyncClient, session_factory, auth_headers, upcoming_event):
    """A cancelled booking does not count against the one-live-booking rule."""
    event, seats = upcoming_event
    first = (await _book(client, auth_headers, event.id, seats[0].id)).json()
    await client.delete(f"/api/v1/bookings/{first['id']}", headers=auth_headers)

    second = await _book(client, auth_headers, event.id, seats[1].id)
    assert second.status_code == 201
    assert second.json()["qr_code_data"] != first["qr_code_data"]

    async with session_factory() as session:
        statuses = (await session.execute(select(Booking.status).order_by(Booking.id))).scalars().all()
    assert statuses == [BookingStatus.CANCELLED, BookingStatus.BOOKED]


@pytest.mark.asyncio
async def test_cancel_twice(client: AsyncClient, auth_headers, upcoming_event):
    event, seats = upcoming_event
    booking_id = (await _book(client, auth_headers, event.id, seats[0].id)).json()["id"]
    await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_cancel_checked_in_booking(client: AsyncClient, session_factory, auth_headers, test_user, upcoming_event):
    event, seats = upcoming_event
    booking = await add_booking(
        session_factory, test_user, event, seats[0], status=BookingStatus.CHECKED_IN, check_in_time=NOW
    )

    response = await client.delete(f"/api/v1/bookings/{booking.id}", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["message"] == "Only booked reservations can be cancelled"


@pytest.mark.asyncio
async def test_cancel_other_users_booking(client: AsyncClient, auth_headers, other_user, upcoming_event):
    event, seats = upcoming_event
    booking_id = (await _book(client, auth_headers, event.id, seats[0].id)).json()["id"]

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=headers_for(other_user))
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_cancel_nonexistent_booking(client: AsyncClient, auth_headers):
    response = await client.delete("/api/v1/bookings/99999", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_booking(client: AsyncClient, auth_headers, other_user, upcoming_event):
    event, seats = upcoming_event
    booking_id = (await _book(client, auth_headers, event.id, seats[2].id)).json()["id"]

    response = await client.get(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["seat_label"] == "A3"
    assert response.json()["event_name"] == "Spring Concert"

    response = await client.get(f"/api/v1/bookings/{booking_id}", headers=headers_for(other_user))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_user_bookings_newest_first(client: AsyncClient, session_factory, auth_headers, clock):
    first_event, first_seats = await add_event(
        session_factory, name="First", start_time=NOW + timedelta(days=2), end_time=NOW + timedelta(days=2, hours=1)
    )
    second_event, second_seats = await add_event(
        session_factory, name="Second", start_time=NOW + timedelta(days=3), end_time=NOW + timedelta(days=3, hours=1)
    )

    await _book(client, auth_headers, first_event.id, first_seats[0].id)
    clock.advance(minutes=5)
    await _book(client, auth_headers, second_event.id, second_seats[0].id)

    response = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert response.status_code == 200
    assert [b["event_name"] for b in response.json()] == ["Second", "First"]


@pytest.mark.asyncio
async def test_attendance_stats(client: AsyncClient, session_factory, auth_headers, test_user):
    events = [
        await add_event(
            session_factory,
            name=f"Event {i}",
            start_time=NOW - timedelta(days=10 - i),
            end_time=NOW - timedelta(days=10 - i) + timedelta(hours=1),
        )
        for i in range(4)
    ]
    (e0, s0), (e1, s1), (e2, s2), (e3, s3) = events
    await add_booking(session_factory, test_user, e0, s0[0], status=BookingStatus.CHECKED_OUT, check_in_time=NOW)
    await add_booking(session_factory, test_user, e1, s1[0], status=BookingStatus.CHECKED_IN, check_in_time=NOW)
    await add_booking(session_factory, test_user, e2, s2[0])
    await add_booking(session_factory, test_user, e3, s3[0], status=BookingStatus.CANCELLED)

    response = await client.get("/api/v1/bookings/stats", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"total_participated": 3, "present_count": 2, "absent_count": 1}
