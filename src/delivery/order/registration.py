"""Order registration — command and handler.

Checkout hands a placed order over to tracking; from then on the order's
status and history live here.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.order.order import Coordinates, Order


@delivery.command(part_of="Order")
class RegisterOrder:
    """Open a placed order for tracking."""

    order_id = Identifier(required=True)
    customer_id = Identifier()
    destination_latitude = Float()
    destination_longitude = Float()


@delivery.command_handler(part_of=Order)
class RegisterOrderHandler:
    @handle(RegisterOrder)
    def register_order(self, command):
        repo = current_domain.repository_for(Order)
        try:
            repo.get(command.order_id)
        except ObjectNotFoundError:
            pass
        else:
            raise ValidationError({"order_id": [f"Order {command.order_id} is already registered"]})

        destination = None
        if command.destination_latitude is not None or command.destination_longitude is not None:
            destination = Coordinates(
                latitude=command.destination_latitude,
                longitude=command.destination_longitude,
            )
        order = Order.register(
            order_id=command.order_id,
            customer_id=command.customer_id,
            destination=destination,
        )
        repo.add(order)
        return str(order.order_id)
