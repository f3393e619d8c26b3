"""
Locust Load Test Suite

Users and events are not created through this API; seed them first (users
1..LOAD_USER_COUNT, and an UPCOMING event LOAD_EVENT_ID with a few seats).
Bearer tokens are minted locally with the service's SECRET_KEY.

Run scenarios:
  locust -f locustfile.py --tags contention   # Many users, few seats
  locust -f locustfile.py --tags scan         # Toggle scans on own bookings
  locust -f locustfile.py --tags throughput   # Cached event listing
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
import threading

from locust import HttpUser, task, between, tag

from seatify.core.security import create_access_token

USER_COUNT = int(os.getenv("LOAD_USER_COUNT", "500"))
CONTENTION_EVENT_ID = int(os.getenv("LOAD_EVENT_ID", "1"))

EVENT_IDS = []
_next_user = iter(range(1, USER_COUNT + 1))
_user_lock = threading.Lock()


def claim_user_id() -> int:
    """Each simulated user gets a distinct seeded identity."""
    with _user_lock:
        try:
            return next(_next_user)
        except StopIteration:
            return random.randint(1, USER_COUNT)


def auth_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user_id)})}"}


class ContentionUser(HttpUser):
    """
    TEST 1: Seat contention - every user goes for the same few seats.

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After the run, verify no seat has two live bookings:
      SELECT seat_id, COUNT(*) FROM bookings
      WHERE status != 'CANCELLED' GROUP BY seat_id HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = auth_headers(claim_user_id())
        resp = self.client.get(f"/api/v1/events/{CONTENTION_EVENT_ID}/seats", name="/api/v1/events/{id}/seats")
        self.seat_ids = [s["id"] for s in resp.json()] if resp.status_code == 200 else []

    @tag("contention")
    @task
    def grab_seat(self):
        if not self.seat_ids:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": CONTENTION_EVENT_ID, "seat_id": random.choice(self.seat_ids)},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: seat taken or already booked
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ScannerUser(HttpUser):
    """
    TEST 2: Scanner - toggle check-in/out on the user's own booking.

    Run: locust -f locustfile.py --tags scan -u 50 -r 10 --run-time 60s

    Two scanners may read one code at the same moment; both must get an
    answer (200, or 409 when contention outlasts the retries).
    """
    wait_time = between(0.5, 2)

    def on_start(self):
        self.headers = auth_headers(claim_user_id())
        self.qr_code_data = None
        resp = self.client.get("/api/v1/bookings/", headers=self.headers)
        if resp.status_code == 200:
            live = [b for b in resp.json() if b["status"] != "CANCELLED"]
            if live:
                self.qr_code_data = live[0]["qr_code_data"]

    @tag("scan")
    @task(5)
    def toggle_scan(self):
        if not self.qr_code_data:
            return
        with self.client.post(
            "/api/v1/attendance/check-in",
            json={"qr_code_data": self.qr_code_data},
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("scan")
    @task(1)
    def auto_checkin_page(self):
        if not self.qr_code_data:
            return
        with self.client.get(
            "/api/v1/attendance/auto-checkin",
            params={"data": self.qr_code_data.split("data=", 1)[-1]},
            name="/api/v1/attendance/auto-checkin",
            catch_response=True,
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            else:
                resp.failure(f"Page must always render, got {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 3: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. With REDIS_ENABLED=false, run again

    Compare avg response time and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/events/?page={page}&page_size=20", name="/api/v1/events/ [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = auth_headers(claim_user_id())

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_event_id(self):
        with self.client.post(
            "/api/v1/bookings/", json={"event_id": 999999, "seat_id": 1}, headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def non_positive_seat(self):
        with self.client.post(
            "/api/v1/bookings/", json={"event_id": 1, "seat_id": 0}, headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, (422,))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/", data="not json at all", headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/bookings/", json={"event_id": 1, "seat_id": 1}, catch_response=True) as resp:
            self._expect(resp, (401,))

    @tag("edge")
    @task
    def garbage_qr_code(self):
        with self.client.post(
            "/api/v1/attendance/check-in", json={"qr_code_data": "SEATIFY:abc:1"}, catch_response=True
        ) as resp:
            self._expect(resp, (400,))
