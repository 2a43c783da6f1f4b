"""Delivery backend port — the contract live views program against.

A backend offers one-time reads of current state, channel subscriptions that
push INSERT/UPDATE changes for one order or chat room, and writes. Adapters
are swapped via configuration (see ``delivery.backend.create_backend``).

Reads raise ``BackendError`` (``OrderNotFound`` for an unknown order).
Writes never raise for expected failures; they return a ``WriteResult``.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4


class BackendError(Exception):
    """A backend call could not be completed."""


class OrderNotFound(BackendError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(frozen=True)
class OrderState:
    """Current status row of an order."""

    order_id: str
    status: str
    updated_at: datetime | None = None
    destination: GeoPoint | None = None


@dataclass(frozen=True)
class OrderStatusUpdate:
    """One append-only status history entry."""

    id: str
    order_id: str
    status: str
    message: str
    timestamp: datetime
    location: GeoPoint | None = None
    estimated_delivery: datetime | None = None

    @classmethod
    def new(
        cls,
        order_id: str,
        status: str,
        message: str,
        location: GeoPoint | None = None,
        estimated_delivery: datetime | None = None,
    ) -> "OrderStatusUpdate":
        return cls(
            id=str(uuid4()),
            order_id=order_id,
            status=status,
            message=message,
            timestamp=datetime.now(UTC),
            location=location,
            estimated_delivery=estimated_delivery,
        )


@dataclass(frozen=True)
class CourierLocation:
    """Latest known position of the courier carrying an order."""

    driver_id: str
    order_id: str
    lat: float
    lng: float
    timestamp: datetime
    heading: float | None = None
    speed: float | None = None

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng)


@dataclass(frozen=True)
class ChatMessage:
    id: str
    room_id: str
    content: str
    sender_id: str
    sender_type: str
    timestamp: datetime
    sender_name: str = ""
    order_id: str | None = None
    read: bool = False


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a write. ``partial`` marks a multi-step write that stopped halfway."""

    success: bool
    error: str | None = None
    record: Any = None
    partial: bool = False

    @classmethod
    def ok(cls, record: Any = None) -> "WriteResult":
        return cls(success=True, record=record)

    @classmethod
    def failed(cls, error: str, partial: bool = False) -> "WriteResult":
        return cls(success=False, error=error, partial=partial)


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------
class Table(Enum):
    ORDERS = "orders"
    ORDER_UPDATES = "order_updates"
    DRIVER_LOCATIONS = "driver_locations"
    CHAT_MESSAGES = "chat_messages"


class ChangeType(Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


class SubscribeStatus(Enum):
    """Acknowledgements a channel reports to its owner."""

    SUBSCRIBED = "SUBSCRIBED"
    TIMED_OUT = "TIMED_OUT"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class ChannelHandle:
    """Cancellable reference to an open channel."""

    topic: str
    channel_id: str = field(default_factory=lambda: uuid4().hex)


OnHistoryInsert = Callable[[OrderStatusUpdate], None]
OnOrderUpdate = Callable[[OrderState], None]
OnCourierChange = Callable[[CourierLocation], None]
OnMessageChange = Callable[[ChatMessage], None]
OnConnectionState = Callable[[SubscribeStatus], None]


# ---------------------------------------------------------------------------
# Port
# ---------------------------------------------------------------------------
class DeliveryBackend(ABC):
    """Abstract interface for delivery backends."""

    #: True when ``record_status_change`` writes status and history atomically.
    supports_atomic_status_change: bool = False

    # -- order tracking reads ------------------------------------------------
    @abstractmethod
    async def read_order(self, order_id: str) -> OrderState:
        """Current status row. Raises ``OrderNotFound``."""
        ...

    @abstractmethod
    async def read_order_history(self, order_id: str) -> list[OrderStatusUpdate]:
        """All history entries for the order, oldest first."""
        ...

    @abstractmethod
    async def read_latest_courier_location(self, order_id: str) -> CourierLocation | None:
        ...

    # -- order tracking subscription -----------------------------------------
    @abstractmethod
    async def subscribe_order(
        self,
        order_id: str,
        *,
        on_history_insert: OnHistoryInsert,
        on_order_update: OnOrderUpdate,
        on_courier_insert: OnCourierChange,
        on_courier_update: OnCourierChange,
        on_connection_state: OnConnectionState,
    ) -> ChannelHandle:
        """Open the order's channel. The handshake result arrives via ``on_connection_state``."""
        ...

    @abstractmethod
    async def unsubscribe(self, handle: ChannelHandle) -> None:
        """Release a channel. Unknown or already released handles are ignored."""
        ...

    # -- order tracking writes -----------------------------------------------
    @abstractmethod
    async def register_order(
        self,
        order_id: str,
        customer_id: str | None = None,
        destination: GeoPoint | None = None,
    ) -> WriteResult:
        """Open an order for tracking in the ``pending`` state."""
        ...

    @abstractmethod
    async def write_order_status(self, order_id: str, status: str) -> WriteResult:
        ...

    @abstractmethod
    async def append_order_history(self, entry: OrderStatusUpdate) -> WriteResult:
        ...

    @abstractmethod
    async def upsert_courier_location(self, location: CourierLocation) -> WriteResult:
        """Insert or replace the position keyed by ``(driver_id, order_id)``."""
        ...

    async def record_status_change(self, entry: OrderStatusUpdate) -> WriteResult:
        """Write the status and append ``entry`` as one transaction."""
        raise NotImplementedError(f"{type(self).__name__} has no atomic status change")

    # -- chat ------------------------------------------------------------------
    @abstractmethod
    async def read_chat_messages(self, room_id: str) -> list[ChatMessage]:
        """All messages in the room, oldest first."""
        ...

    @abstractmethod
    async def subscribe_room(
        self,
        room_id: str,
        *,
        on_message_insert: OnMessageChange,
        on_message_update: OnMessageChange,
        on_connection_state: OnConnectionState,
    ) -> ChannelHandle:
        ...

    @abstractmethod
    async def insert_chat_message(self, message: ChatMessage) -> WriteResult:
        """Store a message. The stored record is returned on the result."""
        ...

    @abstractmethod
    async def mark_message_read(self, message_id: str) -> WriteResult:
        ...
