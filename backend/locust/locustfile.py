"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Last-seat contention
  locust -f locustfile.py --tags throughput   # Search cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Sign-in belongs to the identity provider, so the suite seeds its own driver
and passengers straight into DATABASE_URL_SYNC and mints bearer tokens with
the shared SECRET_KEY.
"""

import os
import random
from datetime import timedelta

from locust import HttpUser, task, between, tag, events
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from rideshare.core.clock import utcnow
from rideshare.core.config import get_settings
from rideshare.core.security import create_access_token
from rideshare.models import User, Trip, Booking  # noqa: F401 - configure mappers
from rideshare.models.enums import UserType

PASSENGER_COUNT = int(os.getenv("LOCUST_PASSENGERS", "200"))
CONTESTED_SEATS = 4
CITIES = ["الرباط", "الدار البيضاء", "فاس", "مراكش", "طنجة", "أكادير", "Rabat", "Casablanca"]

# Shared state
DRIVER_ID = None
PASSENGER_IDS = []
TRIP_IDS = []
CONTESTED_TRIP_ID = None


def bearer(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user_id)})}"}


def trip_json(seats: int) -> dict:
    origin, destination = random.sample(CITIES, 2)
    return {
        "from_location": origin,
        "to_location": destination,
        "departure_time": (utcnow() + timedelta(days=random.randint(1, 30))).isoformat(),
        "total_seats": seats,
        "price_per_seat": str(random.choice([40, 60, 80, 120])),
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: seed one driver and the passenger pool."""
    global DRIVER_ID
    print("\n" + "=" * 60)
    print(f"SETUP: seeding 1 driver and {PASSENGER_COUNT} passengers...")
    print("=" * 60)

    engine = create_engine(get_settings().DATABASE_URL_SYNC)
    with Session(engine) as session:
        driver = User(user_type=UserType.DRIVER, rating=0, total_ratings=0)
        passengers = [
            User(user_type=UserType.PASSENGER, rating=0, total_ratings=0)
            for _ in range(PASSENGER_COUNT)
        ]
        session.add(driver)
        session.add_all(passengers)
        session.commit()
        DRIVER_ID = driver.id
        PASSENGER_IDS.extend(p.id for p in passengers)
    engine.dispose()


class ContestedSeatUser(HttpUser):
    """
    TEST 1: Concurrency - every passenger races for the same 4 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT available_seats, total_seats FROM trips WHERE id = X;
      SELECT SUM(seats_booked) FROM bookings WHERE trip_id = X AND status <> 'cancelled';
    The sum must equal total - available, and never exceed 4.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONTESTED_TRIP_ID
        self.headers = bearer(random.choice(PASSENGER_IDS)) if PASSENGER_IDS else {}

        if not CONTESTED_TRIP_ID and DRIVER_ID:
            resp = self.client.post(
                "/api/v1/trips/", json=trip_json(CONTESTED_SEATS), headers=bearer(DRIVER_ID)
            )
            if resp.status_code == 201:
                CONTESTED_TRIP_ID = resp.json()["id"]
                print(f"\n✓ Created trip {CONTESTED_TRIP_ID} with {CONTESTED_SEATS} seats\n")

    @tag("concurrency")
    @task
    def reserve_last_seats(self):
        """All users fight for the same seats."""
        if not CONTESTED_TRIP_ID or not self.headers:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": CONTESTED_TRIP_ID, "seats_booked": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: insufficient_seats or trip_busy
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class SearchUser(HttpUser):
    """
    TEST 2: Throughput - search cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again

    Compare avg response time, requests/sec and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def search_by_origin(self):
        resp = self.client.get(
            "/api/v1/trips/",
            params={"origin": random.choice(CITIES), "page": random.randint(1, 3)},
            name="/api/v1/trips/?origin [cached]",
        )
        if resp.status_code == 200:
            for trip in resp.json().get("trips", []):
                if trip["id"] not in TRIP_IDS:
                    TRIP_IDS.append(trip["id"])

    @tag("throughput", "read")
    @task(3)
    def get_trip_detail(self):
        if TRIP_IDS:
            self.client.get(f"/api/v1/trips/{random.choice(TRIP_IDS)}", name="/api/v1/trips/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = bearer(random.choice(PASSENGER_IDS)) if PASSENGER_IDS else {}

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_trip(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": 999999, "seats_booked": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def zero_or_negative_seats(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": 1, "seats_booked": random.choice([0, -5])},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def huge_seats(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": 1, "seats_booked": 999999},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [403, 404, 409])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": 1, "seats_booked": 1},
            catch_response=True,
        ) as resp:
            self._expect(resp, [401])

    @tag("edge")
    @task
    def passenger_publishes_trip(self):
        with self.client.post(
            "/api/v1/trips/", json=trip_json(3), headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, [403])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly searching, some reservations and cancellations, rare publishing.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = bearer(random.choice(PASSENGER_IDS)) if PASSENGER_IDS else {}
        self.booking_ids = []

    @task(50)
    def browse(self):
        resp = self.client.get("/api/v1/trips/", params={"page": 1, "page_size": 20})
        if resp.status_code == 200:
            for trip in resp.json().get("trips", []):
                if trip["id"] not in TRIP_IDS:
                    TRIP_IDS.append(trip["id"])

    @task(10)
    def reserve(self):
        if TRIP_IDS and self.headers:
            resp = self.client.post(
                "/api/v1/bookings/",
                json={"trip_id": random.choice(TRIP_IDS), "seats_booked": random.randint(1, 2)},
                headers=self.headers,
            )
            if resp.status_code == 201:
                self.booking_ids.append(resp.json()["id"])

    @task(4)
    def cancel(self):
        if self.booking_ids:
            booking_id = self.booking_ids.pop()
            self.client.post(
                f"/api/v1/bookings/{booking_id}/cancel",
                headers=self.headers,
                name="/api/v1/bookings/{id}/cancel",
            )

    @task(3)
    def publish(self):
        if DRIVER_ID:
            resp = self.client.post(
                "/api/v1/trips/", json=trip_json(random.randint(1, 6)), headers=bearer(DRIVER_ID)
            )
            if resp.status_code == 201:
                TRIP_IDS.append(resp.json()["id"])
