"""Order status history — one immutable aggregate per status report.

Entries are only ever added. Readers order them by ``timestamp``.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, String, ValueObject

from delivery.domain import delivery
from delivery.order.order import Coordinates, OrderStatus


@delivery.aggregate
class OrderHistoryEntry:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20, choices=OrderStatus)
    message = String(max_length=500, default="")
    timestamp = DateTime(required=True)
    location = ValueObject(Coordinates)
    estimated_delivery = DateTime()

    @classmethod
    def record(
        cls,
        order_id: str,
        status: str,
        message: str,
        timestamp: datetime | None = None,
        location: Coordinates | None = None,
        estimated_delivery: datetime | None = None,
        entry_id: str | None = None,
    ):
        kwargs = {}
        if entry_id:
            kwargs["id"] = entry_id
        return cls(
            order_id=order_id,
            status=status,
            message=message,
            timestamp=timestamp or datetime.now(UTC),
            location=location,
            estimated_delivery=estimated_delivery,
            **kwargs,
        )
