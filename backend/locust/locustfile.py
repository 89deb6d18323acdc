"""
Locust Load Test Suite

Trips are created by an admin tool outside this service; point the
scenarios at a published trip with few seats:

  TRIP_ID=1 locust -f locustfile.py --tags concurrency  # Test overbooking
  TRIP_ID=1 locust -f locustfile.py --tags webhook      # Duplicate deliveries
  TRIP_ID=1 locust -f locustfile.py --tags edge         # Test bad input
  TRIP_ID=1 locust -f locustfile.py                     # All tests
"""

import os
import random
import uuid

from locust import HttpUser, task, between, tag

TRIP_ID = int(os.environ.get("TRIP_ID", "1"))

# Bookings created during the run, shared with the webhook users
PENDING = []


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many users -> few seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT max_capacity - available_seats FROM trips WHERE id = X;
      SELECT SUM(num_seats) FROM bookings
       WHERE trip_id = X AND state IN ('PENDING_PAYMENT', 'CONFIRMED');
    Both numbers must match and never exceed max_capacity.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.user_id = f"load-{uuid.uuid4().hex[:8]}"

    @tag("concurrency")
    @task
    def book_limited_seats(self):
        """All users fight for the same seats."""
        with self.client.post(f"/api/v1/trips/{TRIP_ID}/book",
            json={"user_id": self.user_id, "num_seats": 1},
            name="/api/v1/trips/{id}/book",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                PENDING.append(resp.json()["booking"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class WebhookUser(HttpUser):
    """
    TEST 2: At-least-once payment webhooks

    Run: locust -f locustfile.py --tags concurrency,webhook -u 100 -r 50 --run-time 60s

    Each pending booking gets its outcome delivered several times, sometimes
    success after failure. Every delivery must be answered 200.
    """
    wait_time = between(0, 0.2)

    @tag("webhook")
    @task
    def deliver_outcome(self):
        if not PENDING:
            return
        booking = random.choice(PENDING)
        outcome = random.choice(["success", "success", "failed", "pending"])
        with self.client.post("/api/v1/payments/webhook",
            json={
                "booking_id": booking["id"],
                "status": outcome,
                "idempotency_key": booking["idempotency_key"],
                "payment_reference": f"pay_{uuid.uuid4().hex[:10]}",
            },
            catch_response=True
        ) as resp:
            if resp.status_code == 200 and resp.json().get("received"):
                resp.success()
            else:
                resp.failure(f"Webhook not acknowledged: {resp.status_code}")

    @tag("webhook")
    @task
    def cancel_some(self):
        if not PENDING or random.random() > 0.1:
            return
        booking = random.choice(PENDING)
        with self.client.post(f"/api/v1/bookings/{booking['id']}/cancel",
            name="/api/v1/bookings/{id}/cancel",
            catch_response=True
        ) as resp:
            if resp.status_code in [200, 409]:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_trip_id(self):
        with self.client.post("/api/v1/trips/999999/book",
            json={"user_id": "edge", "num_seats": 1},
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def zero_seats(self):
        with self.client.post(f"/api/v1/trips/{TRIP_ID}/book",
            json={"user_id": "edge", "num_seats": 0},
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def huge_seats(self):
        with self.client.post(f"/api/v1/trips/{TRIP_ID}/book",
            json={"user_id": "edge", "num_seats": 999999},
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 409])

    @tag("edge")
    @task
    def malformed_webhook(self):
        """Garbage must still be acknowledged."""
        with self.client.post("/api/v1/payments/webhook",
            data="not json at all",
            headers={"Content-Type": "application/json"},
            catch_response=True
        ) as resp:
            self._expect(resp, [200])
