"""Tests for OrderHistoryEntry — the append-only status log."""

from datetime import UTC, datetime

import pytest
from delivery.order.history import OrderHistoryEntry
from delivery.order.order import Coordinates
from protean.exceptions import ValidationError


class TestRecord:
    def test_record_defaults_timestamp(self):
        entry = OrderHistoryEntry.record(order_id="ord-001", status="confirmed", message="ok")
        assert entry.timestamp is not None
        assert entry.message == "ok"

    def test_record_keeps_supplied_id_and_timestamp(self):
        t0 = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        entry = OrderHistoryEntry.record(
            order_id="ord-001",
            status="on_way",
            message="Courier picked up",
            timestamp=t0,
            location=Coordinates(latitude=1.0, longitude=2.0),
            entry_id="11111111-1111-4111-8111-111111111111",
        )
        assert str(entry.id) == "11111111-1111-4111-8111-111111111111"
        assert entry.timestamp == t0
        assert entry.location.longitude == 2.0

    def test_message_may_be_empty(self):
        entry = OrderHistoryEntry.record(order_id="ord-001", status="ready", message="")
        assert entry.message == ""

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            OrderHistoryEntry.record(order_id="ord-001", status="lost", message="?")
