"""Order aggregate (CQRS) — the store-side record a live tracker reads.

Only the fields a tracking view needs are held here; checkout owns the rest
of the order. Status moves freely between the non-terminal states because
restaurants and couriers report progress out of band.

Statuses:
    pending → confirmed → preparing → ready → on_way → delivered
    any non-terminal state → cancelled
    delivered, cancelled are terminal
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, ValueObject

from delivery.domain import delivery


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    ON_WAY = "on_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


_TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


@delivery.value_object
class Coordinates:
    """Latitude/longitude pair. Both values are required when provided."""

    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def both_coordinates_required(self):
        if self.latitude is None or self.longitude is None:
            raise ValidationError({"coordinates": ["Both latitude and longitude are required"]})


@delivery.aggregate
class Order:
    order_id = Identifier(identifier=True, required=True)
    customer_id = Identifier()
    status = String(max_length=20, choices=OrderStatus, default=OrderStatus.PENDING.value)
    destination = ValueObject(Coordinates)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(
        cls,
        order_id: str,
        customer_id: str | None = None,
        destination: Coordinates | None = None,
    ):
        """Open an order for tracking in the pending state."""
        now = datetime.now(UTC)
        return cls(
            order_id=order_id,
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            destination=destination,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in _TERMINAL_STATUSES

    def change_status(self, status: str) -> None:
        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {status}"]}) from None

        if self.is_terminal and target != OrderStatus(self.status):
            raise ValidationError({"status": [f"Order is already {self.status}"]})

        self.status = target.value
        self.updated_at = datetime.now(UTC)
