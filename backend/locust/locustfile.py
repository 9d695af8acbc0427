"""
Locust Load Test Suite

Users are provisioned by the campus app, so the load test mints bearer
tokens itself with the API's SECRET_KEY for a range of existing user ids.

Environment:
  SECRET_KEY          must match the API
  LOAD_USER_IDS       "first-last" range of seeded student ids (default 2-201)
  LOAD_OFFER_ID       carpool offer everyone fights over
  LOAD_EVENT_ID       event whose offer listing is hammered
  LOAD_ROOM_ID        room everyone tries to rent for the same slot

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Seat ledger / double booking
  locust -f locustfile.py --tags throughput   # Listing cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from datetime import datetime, timezone, timedelta

import jwt
from locust import HttpUser, task, between, tag, events

SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key-change-in-production")
OFFER_ID = int(os.getenv("LOAD_OFFER_ID", "1"))
EVENT_ID = int(os.getenv("LOAD_EVENT_ID", "1"))
ROOM_ID = int(os.getenv("LOAD_ROOM_ID", "1"))

_first, _last = os.getenv("LOAD_USER_IDS", "2-201").split("-")
USER_IDS = list(range(int(_first), int(_last) + 1))

# Every renter asks for the same slot a week out
SLOT_START = (datetime.now(timezone.utc) + timedelta(days=7)).replace(minute=0, second=0, microsecond=0)
SLOT_END = SLOT_START + timedelta(hours=2)


def bearer_for(user_id: int) -> dict:
    expire = datetime.now(timezone.utc) + timedelta(hours=1)
    token = jwt.encode({"sub": str(user_id), "exp": int(expire.timestamp())}, SECRET_KEY, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Offer {OFFER_ID}, event {EVENT_ID}, room {ROOM_ID}, {len(USER_IDS)} users")
    print("=" * 60)


class SeatContentionUser(HttpUser):
    """
    TEST 1: Concurrency - many users -> one offer's seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify the ledger:
      SELECT o.seats_available, o.total_seats, o.status,
             (SELECT COUNT(*) FROM carpool_passengers p
              WHERE p.offer_id = o.id AND p.status = 'confirmed') AS confirmed
      FROM carpool_offers o WHERE o.id = X;
    seats_available + confirmed must equal total_seats, status 'full' iff 0.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = bearer_for(random.choice(USER_IDS))

    @tag("concurrency")
    @task(3)
    def join_offer(self):
        with self.client.post(
            f"/api/v1/carpools/offers/{OFFER_ID}/join",
            json={},
            headers=self.headers,
            name="/carpools/offers/{id}/join",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: full or already joined
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task(1)
    def leave_offer(self):
        with self.client.post(
            f"/api/v1/carpools/offers/{OFFER_ID}/leave",
            headers=self.headers,
            name="/carpools/offers/{id}/leave",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 404, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class RoomContentionUser(HttpUser):
    """
    TEST 2: Concurrency - many renters -> one room, one slot

    Run: locust -f locustfile.py --tags concurrency -u 50 -r 50 --run-time 20s

    After test, verify:
      SELECT COUNT(*) FROM room_rentals
      WHERE room_id = X AND status IN ('pending', 'approved');
    Should be 1
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = bearer_for(random.choice(USER_IDS))

    @tag("concurrency")
    @task
    def request_same_slot(self):
        with self.client.post(
            "/api/v1/rentals/",
            json={
                "room_id": ROOM_ID,
                "start_time": SLOT_START.isoformat(),
                "end_time": SLOT_END.isoformat(),
                "purpose": "Load test",
            },
            headers=self.headers,
            name="/rentals/ [same slot]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: slot taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 3: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare avg response time, requests/sec, P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_event_offers_cached(self):
        self.client.get(
            f"/api/v1/carpools/events/{EVENT_ID}/offers",
            name="/carpools/events/{id}/offers [cached]",
        )

    @tag("throughput", "read")
    @task(3)
    def available_rooms(self):
        self.client.get(
            "/api/v1/rooms/available",
            params={"start_time": SLOT_START.isoformat(), "end_time": SLOT_END.isoformat()},
            name="/rooms/available",
        )

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
        self.headers = bearer_for(random.choice(USER_IDS))

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def join_missing_offer(self):
        with self.client.post(
            "/api/v1/carpools/offers/999999/join", json={}, headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def inverted_rental_range(self):
        with self.client.post(
            "/api/v1/rentals/",
            json={
                "room_id": ROOM_ID,
                "start_time": SLOT_END.isoformat(),
                "end_time": SLOT_START.isoformat(),
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 409))

    @tag("edge")
    @task
    def forged_ticket(self):
        with self.client.post(
            "/api/v1/tickets/scan",
            json={"token": '{"payload":"e30=","signature":"AAAA"}'},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (401, 403))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/rentals/", data="not json at all", headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            f"/api/v1/carpools/offers/{OFFER_ID}/join", json={}, catch_response=True
        ) as resp:
            self._expect(resp, (401,))
