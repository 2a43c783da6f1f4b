from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from delivery.backend.fake_adapter import FakeBackend
from delivery.backend.port import CourierLocation, GeoPoint, OrderStatusUpdate

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _update(order_id, status, message="", minutes=0, estimated_delivery=None, timestamp=None):
    return OrderStatusUpdate(
        id=str(uuid4()),
        order_id=order_id,
        status=status,
        message=message,
        timestamp=timestamp or T0 + timedelta(minutes=minutes),
        estimated_delivery=estimated_delivery,
    )


def _courier(order_id, lat, lng, timestamp=None, driver_id="drv-1"):
    return CourierLocation(
        driver_id=driver_id,
        order_id=order_id,
        lat=lat,
        lng=lng,
        timestamp=timestamp or T0,
    )


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def make_update():
    return _update


@pytest.fixture
def make_courier():
    return _courier


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def seeded(backend):
    """Backend holding order-1 in `preparing` with one confirmed history entry."""
    backend.seed_order(
        "order-1",
        status="preparing",
        destination=GeoPoint(lat=13.7563, lng=100.5018),
        history=[_update("order-1", "confirmed", "ok")],
    )
    return backend
