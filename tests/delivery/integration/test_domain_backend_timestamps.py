"""DomainBackend over rows holding naive datetimes, as RDBMS providers return them."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from delivery.backend.domain_adapter import DomainBackend
from delivery.chat.message import RoomMessage
from delivery.courier.position import CourierPosition
from delivery.order.history import OrderHistoryEntry
from delivery.order.order import Order
from delivery.tracking.synchronizer import LiveOrderTracker, MergePolicy
from protean import current_domain


def _naive(minutes_ago=0):
    return (datetime.now(UTC) - timedelta(minutes=minutes_ago)).replace(tzinfo=None)


class SlowSnapshotBackend(DomainBackend):
    """Holds the snapshot's order read until ``release()``."""

    def __init__(self):
        super().__init__()
        self._released = None

    def release(self):
        self._released.set()

    async def read_order(self, order_id):
        self._released = self._released or asyncio.Event()
        await self._released.wait()
        return await super().read_order(order_id)


def _store_naive_rows(order_id):
    asyncio.run(DomainBackend().register_order(order_id))

    order_repo = current_domain.repository_for(Order)
    order = order_repo.get(order_id)
    order.updated_at = _naive(10)
    order_repo.add(order)

    current_domain.repository_for(OrderHistoryEntry).add(
        OrderHistoryEntry.record(
            order_id=order_id,
            status="confirmed",
            message="ok",
            timestamp=_naive(10),
            estimated_delivery=_naive(-30),
        )
    )
    current_domain.repository_for(CourierPosition).add(
        CourierPosition.report(driver_id="drv-1", order_id=order_id, latitude=1.0, longitude=1.0, timestamp=_naive(5))
    )
    current_domain.repository_for(RoomMessage).add(
        RoomMessage.post(room_id="room-1", content="hi", sender_id="drv-1", timestamp=_naive(5))
    )


@pytest.fixture
def stored():
    _store_naive_rows("ord-n")
    return "ord-n"


def test_reads_return_utc_timestamps(stored):
    backend = DomainBackend()

    async def scenario():
        return (
            await backend.read_order(stored),
            await backend.read_order_history(stored),
            await backend.read_latest_courier_location(stored),
            await backend.read_chat_messages("room-1"),
        )

    order, history, courier, messages = asyncio.run(scenario())

    assert order.updated_at.tzinfo == UTC
    assert history[0].timestamp.tzinfo == UTC
    assert history[0].estimated_delivery.tzinfo == UTC
    assert courier.timestamp.tzinfo == UTC
    assert messages[0].timestamp.tzinfo == UTC


def test_recency_tracker_follows_pings_after_snapshot(stored):
    backend = DomainBackend()

    async def scenario():
        tracker = LiveOrderTracker(backend, merge_policy=MergePolicy.RECENCY)
        await tracker.start(stored)
        await tracker.wait_loaded()
        await asyncio.sleep(0)
        await LiveOrderTracker(backend).submit_courier_location(stored, "drv-1", 2.0, 2.0)
        return tracker.projection

    projection = asyncio.run(scenario())
    assert projection.load_error is None
    assert (projection.courier_location.lat, projection.courier_location.lng) == (2.0, 2.0)


def test_recency_snapshot_merges_stored_and_live_history(stored):
    backend = SlowSnapshotBackend()

    async def scenario():
        tracker = LiveOrderTracker(backend, merge_policy=MergePolicy.RECENCY)
        await tracker.start(stored)
        await asyncio.sleep(0)
        assert tracker.connected

        result = await LiveOrderTracker(backend).submit_status_update(stored, "preparing", "Cooking")
        assert result.success, result.error

        backend.release()
        await tracker.wait_loaded()
        return tracker.projection

    projection = asyncio.run(scenario())
    assert projection.load_error is None
    assert [entry.status for entry in projection.history] == ["confirmed", "preparing"]
    assert projection.status == "preparing"
