"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state — no cross-user sharing.
State tracks IDs returned by creation endpoints so follow-up operations
can reference them.
"""

from dataclasses import dataclass, field


@dataclass
class TrackedOrderState:
    """Tracks state for a single simulated delivery."""

    order_id: str | None = None
    destination: dict | None = None
    driver_id: str | None = None
    courier_position: dict | None = None
    current_status: str = "pending"
    pings_sent: int = 0


@dataclass
class ChatRoomState:
    """Tracks state for a customer/driver conversation."""

    room_id: str | None = None
    order_id: str | None = None
    customer_id: str | None = None
    driver_id: str | None = None
    message_ids: list[str] = field(default_factory=list)
