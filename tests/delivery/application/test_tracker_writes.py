"""LiveOrderTracker writes — status updates, the pending history queue and courier upserts."""

import asyncio
from datetime import UTC, datetime

from delivery.backend.fake_adapter import FakeBackend
from delivery.backend.port import GeoPoint, WriteResult
from delivery.tracking.synchronizer import LiveOrderTracker


class AtomicFakeBackend(FakeBackend):
    """Fake that offers the single-transaction status change."""

    supports_atomic_status_change = True

    def __init__(self):
        super().__init__()
        self.recorded = []

    async def record_status_change(self, entry):
        await self._enter("record_status_change")
        self.recorded.append(entry)
        return WriteResult.ok(entry)


class ExplodingBackend(FakeBackend):
    async def write_order_status(self, order_id, status):
        raise RuntimeError("connection reset")


class TestSubmitStatusUpdate:
    def test_writes_status_then_history(self, seeded):
        eta = datetime(2024, 5, 1, 13, 0, tzinfo=UTC)
        tracker = LiveOrderTracker(seeded)

        result = asyncio.run(
            tracker.submit_status_update(
                "order-1",
                "on_way",
                "Courier picked up",
                location=GeoPoint(lat=13.7, lng=100.5),
                estimated_delivery=eta,
            )
        )

        assert result.success is True
        assert seeded.orders["order-1"].status == "on_way"
        entry = seeded.history_for("order-1")[-1]
        assert entry == result.record
        assert entry.message == "Courier picked up"
        assert entry.location == GeoPoint(lat=13.7, lng=100.5)
        assert entry.estimated_delivery == eta
        assert tracker.pending_history == []

    def test_failed_status_write_skips_history(self, seeded):
        seeded.configure(failing={"write_order_status"}, failure_reason="status table locked")
        tracker = LiveOrderTracker(seeded)

        result = asyncio.run(tracker.submit_status_update("order-1", "on_way", "msg"))

        assert result.success is False
        assert result.partial is False
        assert result.error == "status table locked"
        assert seeded.calls["write_order_status"] == 1
        assert seeded.calls["append_order_history"] == 0
        assert seeded.orders["order-1"].status == "preparing"

    def test_failed_history_append_is_partial_and_queued(self, seeded):
        seeded.configure(failing={"append_order_history"})
        tracker = LiveOrderTracker(seeded)

        result = asyncio.run(tracker.submit_status_update("order-1", "ready", "Packed"))

        assert result.success is False
        assert result.partial is True
        assert seeded.orders["order-1"].status == "ready"
        assert len(seeded.history_for("order-1")) == 1
        assert [entry.status for entry in tracker.pending_history] == ["ready"]

    def test_unknown_order_fails(self, backend):
        result = asyncio.run(LiveOrderTracker(backend).submit_status_update("missing", "ready", "?"))
        assert result.success is False
        assert backend.calls["append_order_history"] == 0

    def test_unexpected_exception_becomes_failed_result(self):
        backend = ExplodingBackend()
        backend.seed_order("order-1")

        result = asyncio.run(LiveOrderTracker(backend).submit_status_update("order-1", "ready", "?"))

        assert result.success is False
        assert result.error == "connection reset"
        assert backend.calls["append_order_history"] == 0

    def test_atomic_backend_uses_single_write(self):
        backend = AtomicFakeBackend()
        backend.seed_order("order-1")

        result = asyncio.run(LiveOrderTracker(backend).submit_status_update("order-1", "confirmed", "Accepted"))

        assert result.success is True
        assert [entry.status for entry in backend.recorded] == ["confirmed"]
        assert backend.calls["write_order_status"] == 0
        assert backend.calls["append_order_history"] == 0

    def test_update_reaches_a_tracking_view(self, seeded):
        async def scenario():
            viewer = LiveOrderTracker(seeded)
            await viewer.start("order-1")
            await viewer.wait_loaded()
            await asyncio.sleep(0)
            await LiveOrderTracker(seeded).submit_status_update("order-1", "on_way", "Courier left")
            return viewer.projection

        projection = asyncio.run(scenario())
        assert projection.status == "on_way"
        assert projection.history[-1].message == "Courier left"


class TestRetryPendingHistory:
    def _partial(self, backend):
        backend.configure(failing={"append_order_history"})
        tracker = LiveOrderTracker(backend)
        asyncio.run(tracker.submit_status_update("order-1", "ready", "Packed"))
        asyncio.run(tracker.submit_status_update("order-1", "on_way", "Left"))
        return tracker

    def test_retry_recovers_queued_entries(self, seeded):
        tracker = self._partial(seeded)
        seeded.configure()

        results = asyncio.run(tracker.retry_pending_history())

        assert [result.success for result in results] == [True, True]
        assert tracker.pending_history == []
        assert [entry.status for entry in seeded.history_for("order-1")] == ["confirmed", "ready", "on_way"]

    def test_retry_keeps_entries_that_still_fail(self, seeded):
        tracker = self._partial(seeded)

        results = asyncio.run(tracker.retry_pending_history())

        assert [result.success for result in results] == [False, False]
        assert [entry.status for entry in tracker.pending_history] == ["ready", "on_way"]

    def test_retry_with_empty_queue(self, backend):
        assert asyncio.run(LiveOrderTracker(backend).retry_pending_history()) == []


class TestSubmitCourierLocation:
    def test_upsert_keeps_one_record_per_driver_and_order(self, seeded):
        tracker = LiveOrderTracker(seeded)

        async def scenario():
            await tracker.submit_courier_location("order-1", "drv-1", 13.70, 100.40)
            return await tracker.submit_courier_location("order-1", "drv-1", 13.71, 100.42, heading=45.0, speed=20.0)

        result = asyncio.run(scenario())

        assert result.success is True
        assert list(seeded.courier_locations) == [("drv-1", "order-1")]
        stored = seeded.courier_locations[("drv-1", "order-1")]
        assert (stored.lat, stored.lng, stored.heading, stored.speed) == (13.71, 100.42, 45.0, 20.0)

    def test_different_drivers_are_separate_records(self, seeded):
        tracker = LiveOrderTracker(seeded)

        async def scenario():
            await tracker.submit_courier_location("order-1", "drv-1", 1.0, 1.0)
            await tracker.submit_courier_location("order-1", "drv-2", 2.0, 2.0)

        asyncio.run(scenario())
        assert len(seeded.courier_locations) == 2

    def test_failed_upsert(self, seeded):
        seeded.configure(should_succeed=False)
        result = asyncio.run(LiveOrderTracker(seeded).submit_courier_location("order-1", "drv-1", 1.0, 1.0))
        assert result.success is False
        assert seeded.courier_locations == {}
