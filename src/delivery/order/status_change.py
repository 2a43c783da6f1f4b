"""Status change — command and handler.

Updates the order's current status and appends the matching history entry
inside one unit of work, so either both writes land or neither does.
"""

from protean import handle
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.order.history import OrderHistoryEntry
from delivery.order.order import Coordinates, Order


@delivery.command(part_of="Order")
class RecordStatusChange:
    """Move an order to a new status and record why."""

    order_id = Identifier(required=True)
    entry_id = Identifier()
    status = String(required=True, max_length=20)
    message = String(max_length=500, default="")
    timestamp = DateTime()
    latitude = Float()
    longitude = Float()
    estimated_delivery = DateTime()


@delivery.command_handler(part_of=Order)
class StatusChangeHandler:
    @handle(RecordStatusChange)
    def record_status_change(self, command):
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(command.order_id)
        order.change_status(command.status)
        order_repo.add(order)

        location = None
        if command.latitude is not None and command.longitude is not None:
            location = Coordinates(latitude=command.latitude, longitude=command.longitude)

        entry = OrderHistoryEntry.record(
            order_id=command.order_id,
            status=order.status,
            message=command.message,
            timestamp=command.timestamp,
            location=location,
            estimated_delivery=command.estimated_delivery,
            entry_id=command.entry_id,
        )
        current_domain.repository_for(OrderHistoryEntry).add(entry)
        return str(entry.id)
