"""Order tracking load test scenarios.

DeliveryJourney walks one order through the whole status flow with courier
pings in between, reading the tracking view as a customer would.
CourierPingUser hammers the location upsert for a handful of orders.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, constant_pacing, task

from loadtests.data_generators import (
    STATUS_FLOW,
    courier_ping_data,
    courier_start,
    register_order_data,
    status_update_data,
    unique_driver_id,
)
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import TrackedOrderState


def _register(client, state: TrackedOrderState, name: str) -> bool:
    payload = register_order_data()
    with client.post("/orders", json=payload, catch_response=True, name=name) as resp:
        if resp.status_code == 201:
            state.order_id = resp.json()["order_id"]
            state.destination = payload["destination"]
            state.driver_id = unique_driver_id()
            state.courier_position = courier_start(payload["destination"])
            return True
        resp.failure(f"Registration failed: {resp.status_code} — {extract_error_detail(resp)}")
        return False


def _ping(client, state: TrackedOrderState, name: str) -> None:
    payload = courier_ping_data(state.driver_id, state.courier_position, state.destination)
    with client.put(
        f"/orders/{state.order_id}/courier-location",
        json=payload,
        catch_response=True,
        name=name,
    ) as resp:
        if resp.status_code == 200:
            state.courier_position = {"lat": payload["lat"], "lng": payload["lng"]}
            state.pings_sent += 1
        else:
            resp.failure(f"Courier ping failed: {resp.status_code} — {extract_error_detail(resp)}")


class DeliveryJourney(SequentialTaskSet):
    """Register -> confirmed .. delivered, with pings and tracking reads.

    Each status step writes the status and its history entry; the courier
    pings only start once the order is on its way.
    """

    def on_start(self):
        self.state = TrackedOrderState()

    @task
    def register(self):
        if not _register(self.client, self.state, "POST /orders"):
            self.interrupt()

    @task
    def advance_through_kitchen(self):
        for status in STATUS_FLOW[:3]:
            self._advance(status)

    @task
    def pick_up(self):
        self._advance("on_way", with_eta=True)

    @task
    def drive(self):
        for _ in range(random.randint(3, 8)):
            _ping(self.client, self.state, "PUT /orders/{id}/courier-location")
            self._read_tracking()

    @task
    def deliver(self):
        self._advance("delivered")
        self._read_tracking()

    @task
    def done(self):
        self.interrupt()

    def _advance(self, status: str, with_eta: bool = False):
        with self.client.post(
            f"/orders/{self.state.order_id}/updates",
            json=status_update_data(status, with_eta=with_eta),
            catch_response=True,
            name="POST /orders/{id}/updates",
        ) as resp:
            if resp.status_code == 201:
                self.state.current_status = status
            else:
                resp.failure(f"Status {status} failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    def _read_tracking(self):
        with self.client.get(
            f"/orders/{self.state.order_id}/tracking",
            catch_response=True,
            name="GET /orders/{id}/tracking",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Tracking read failed: {resp.status_code} — {extract_error_detail(resp)}")
            elif resp.json()["status"] != self.state.current_status:
                resp.failure(f"Tracking shows {resp.json()['status']}, expected {self.state.current_status}")


class CancelledDeliveryJourney(SequentialTaskSet):
    """Register -> confirmed -> cancelled -> attempted on_way (must be rejected)."""

    def on_start(self):
        self.state = TrackedOrderState()

    @task
    def register(self):
        if not _register(self.client, self.state, "POST /orders"):
            self.interrupt()

    @task
    def confirm_and_cancel(self):
        for status in ("confirmed", "cancelled"):
            self.client.post(
                f"/orders/{self.state.order_id}/updates",
                json=status_update_data(status),
                name="POST /orders/{id}/updates",
            )

    @task
    def reject_after_cancel(self):
        with self.client.post(
            f"/orders/{self.state.order_id}/updates",
            json=status_update_data("on_way"),
            catch_response=True,
            name="POST /orders/{id}/updates [terminal]",
        ) as resp:
            if resp.status_code == 409:
                resp.success()
            else:
                resp.failure(f"Expected 409 after cancellation, got {resp.status_code}")

    @task
    def done(self):
        self.interrupt()


class TrackingUser(HttpUser):
    wait_time = between(0.5, 2.0)
    tasks = {DeliveryJourney: 5, CancelledDeliveryJourney: 1}


class CourierPingUser(HttpUser):
    """Stress test: location upserts for one order at ~5 pings/sec per user.

    Every ping after the first is an UPDATE of the same (driver, order) row.
    """

    wait_time = constant_pacing(0.2)

    def on_start(self):
        self.state = TrackedOrderState()
        _register(self.client, self.state, "[PINGS] POST /orders")

    @task(10)
    def ping(self):
        if self.state.order_id:
            _ping(self.client, self.state, "[PINGS] PUT /orders/{id}/courier-location")

    @task(1)
    def read_tracking(self):
        if self.state.order_id:
            self.client.get(f"/orders/{self.state.order_id}/tracking", name="[PINGS] GET /orders/{id}/tracking")
