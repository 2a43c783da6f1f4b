"""Delivery bounded context — order status, courier positions and chat.

Holds the store-side records that live views read and subscribe to: the
current status of each order, its append-only status history, the latest
courier position per driver and order, and chat room messages. Uses CQRS;
change notifications are published by the backend adapter after each write.
"""

from protean.domain import Domain

from delivery.utils.logging import configure_logging

# Configure logging for the application
configure_logging()

# Domain Composition Root
delivery = Domain(name="delivery")
