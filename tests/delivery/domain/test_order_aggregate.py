"""Tests for the Order aggregate — registration and status changes."""

import pytest
from delivery.order.order import Coordinates, Order, OrderStatus
from protean.exceptions import ValidationError


def _order(status=None):
    order = Order.register(order_id="ord-001", customer_id="cust-001")
    if status is not None:
        order.status = status
    return order


class TestOrderRegistration:
    def test_registered_order_is_pending(self):
        order = _order()
        assert order.status == OrderStatus.PENDING.value
        assert order.created_at is not None
        assert order.updated_at == order.created_at

    def test_register_with_destination(self):
        order = Order.register(
            order_id="ord-002",
            destination=Coordinates(latitude=13.7563, longitude=100.5018),
        )
        assert order.destination.latitude == 13.7563
        assert order.destination.longitude == 100.5018

    def test_register_without_destination(self):
        assert Order.register(order_id="ord-003").destination is None

    def test_order_id_is_required(self):
        with pytest.raises(ValidationError):
            Order.register(order_id=None)


class TestChangeStatus:
    @pytest.mark.parametrize("status", ["confirmed", "preparing", "ready", "on_way", "delivered", "cancelled"])
    def test_pending_order_moves_to_any_status(self, status):
        order = _order()
        order.change_status(status)
        assert order.status == status

    def test_status_may_move_backwards_before_delivery(self):
        order = _order("on_way")
        order.change_status("ready")
        assert order.status == "ready"

    def test_change_refreshes_updated_at(self):
        order = _order()
        before = order.updated_at
        order.change_status("confirmed")
        assert order.updated_at >= before

    def test_unknown_status_rejected(self):
        order = _order()
        with pytest.raises(ValidationError) as exc:
            order.change_status("teleported")
        assert "status" in exc.value.messages
        assert order.status == "pending"

    @pytest.mark.parametrize("terminal", ["delivered", "cancelled"])
    def test_terminal_order_cannot_change(self, terminal):
        order = _order(terminal)
        with pytest.raises(ValidationError) as exc:
            order.change_status("on_way")
        assert f"Order is already {terminal}" in exc.value.messages["status"][0]

    def test_repeating_terminal_status_is_allowed(self):
        order = _order("delivered")
        order.change_status("delivered")
        assert order.status == "delivered"

    @pytest.mark.parametrize(
        "status, terminal",
        [("pending", False), ("on_way", False), ("delivered", True), ("cancelled", True)],
    )
    def test_is_terminal(self, status, terminal):
        assert _order(status).is_terminal is terminal


class TestCoordinates:
    def test_valid_coordinates(self):
        point = Coordinates(latitude=-33.8688, longitude=151.2093)
        assert point.latitude == -33.8688

    def test_latitude_out_of_range(self):
        with pytest.raises(ValidationError):
            Coordinates(latitude=91.0, longitude=0.0)

    def test_longitude_out_of_range(self):
        with pytest.raises(ValidationError):
            Coordinates(latitude=0.0, longitude=-181.0)

    def test_both_values_required(self):
        with pytest.raises(ValidationError):
            Coordinates(latitude=10.0)
