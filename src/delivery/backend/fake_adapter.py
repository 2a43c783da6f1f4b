"""Fake delivery backend — deterministic in-memory store for testing and development.

Keeps the four logical tables in dictionaries and pushes every write through
a ``ChangeFeed``. Failures, handshake outcomes and slow reads are
configurable so tests can drive each branch of a live view.
"""

import asyncio
from collections import Counter
from dataclasses import replace
from datetime import UTC, datetime

from delivery.backend.feed import ChangeFeed, order_channel, room_channel
from delivery.backend.port import (
    BackendError,
    ChangeType,
    ChannelHandle,
    ChatMessage,
    CourierLocation,
    DeliveryBackend,
    GeoPoint,
    OrderNotFound,
    OrderState,
    OrderStatusUpdate,
    SubscribeStatus,
    Table,
    WriteResult,
)


class FakeBackend(DeliveryBackend):
    """In-memory backend that succeeds by default."""

    def __init__(self):
        self.feed = ChangeFeed()
        self.orders: dict[str, OrderState] = {}
        self.history: dict[str, list[OrderStatusUpdate]] = {}
        self.courier_locations: dict[tuple[str, str], CourierLocation] = {}
        self.messages: dict[str, ChatMessage] = {}
        self.calls: Counter = Counter()
        self._read_gates: dict[str, asyncio.Event] = {}
        self.configure()

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Backend unavailable",
        failing: set[str] | None = None,
        handshake: SubscribeStatus = SubscribeStatus.SUBSCRIBED,
    ):
        """Configure the fake's behaviour.

        ``failing`` names individual operations (``"write_order_status"``,
        ``"read_order_history"``, ...) to fail while the rest succeed; without
        it ``should_succeed`` applies to every operation.
        """
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.failing = set(failing or ())
        self.handshake = handshake

    # -------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------
    def seed_order(
        self,
        order_id: str,
        status: str = "pending",
        destination: GeoPoint | None = None,
        history: list[OrderStatusUpdate] | None = None,
        courier: CourierLocation | None = None,
    ) -> OrderState:
        """Store an order and its related rows without publishing changes."""
        state = OrderState(order_id=order_id, status=status, updated_at=datetime.now(UTC), destination=destination)
        self.orders[order_id] = state
        self.history[order_id] = list(history or [])
        if courier is not None:
            self.courier_locations[(courier.driver_id, order_id)] = courier
        return state

    def block_reads(self, key: str) -> asyncio.Event:
        """Hold every read for ``key`` (order or room id) until the returned event is set."""
        gate = asyncio.Event()
        self._read_gates[key] = gate
        return gate

    def history_for(self, order_id: str) -> list[OrderStatusUpdate]:
        return list(self.history.get(order_id, []))

    async def _enter(self, operation: str, key: str | None = None) -> None:
        self.calls[operation] += 1
        await asyncio.sleep(0)
        gate = self._read_gates.get(key) if key is not None and operation.startswith("read_") else None
        if gate is not None:
            await gate.wait()

    def _fails(self, operation: str) -> bool:
        if self.failing:
            return operation in self.failing
        return not self.should_succeed

    async def _read(self, operation: str, key: str) -> None:
        await self._enter(operation, key)
        if self._fails(operation):
            raise BackendError(self.failure_reason)

    # -------------------------------------------------------------------
    # Order tracking
    # -------------------------------------------------------------------
    async def read_order(self, order_id: str) -> OrderState:
        await self._read("read_order", order_id)
        try:
            return self.orders[order_id]
        except KeyError:
            raise OrderNotFound(order_id) from None

    async def read_order_history(self, order_id: str) -> list[OrderStatusUpdate]:
        await self._read("read_order_history", order_id)
        return sorted(self.history.get(order_id, []), key=lambda entry: entry.timestamp)

    async def read_latest_courier_location(self, order_id: str) -> CourierLocation | None:
        await self._read("read_latest_courier_location", order_id)
        candidates = [loc for loc in self.courier_locations.values() if loc.order_id == order_id]
        if not candidates:
            return None
        return max(candidates, key=lambda loc: loc.timestamp)

    async def subscribe_order(
        self,
        order_id: str,
        *,
        on_history_insert,
        on_order_update,
        on_courier_insert,
        on_courier_update,
        on_connection_state,
    ) -> ChannelHandle:
        await self._enter("subscribe_order")
        channel = order_channel(
            self.feed,
            order_id,
            on_history_insert=on_history_insert,
            on_order_update=on_order_update,
            on_courier_insert=on_courier_insert,
            on_courier_update=on_courier_update,
            on_connection_state=on_connection_state,
        )
        return self.feed.open(channel, ack=self.handshake)

    async def unsubscribe(self, handle: ChannelHandle) -> None:
        await self._enter("unsubscribe")
        self.feed.close(handle)

    async def register_order(
        self,
        order_id: str,
        customer_id: str | None = None,
        destination: GeoPoint | None = None,
    ) -> WriteResult:
        await self._enter("register_order")
        if self._fails("register_order"):
            return WriteResult.failed(self.failure_reason)
        if order_id in self.orders:
            return WriteResult.failed(f"Order {order_id} is already registered")
        return WriteResult.ok(self.seed_order(order_id, destination=destination))

    async def write_order_status(self, order_id: str, status: str) -> WriteResult:
        await self._enter("write_order_status")
        if self._fails("write_order_status"):
            return WriteResult.failed(self.failure_reason)
        current = self.orders.get(order_id)
        if current is None:
            return WriteResult.failed(f"Order {order_id} not found")
        updated = replace(current, status=status, updated_at=datetime.now(UTC))
        self.orders[order_id] = updated
        self.feed.publish(Table.ORDERS, ChangeType.UPDATE, updated)
        return WriteResult.ok(updated)

    async def append_order_history(self, entry: OrderStatusUpdate) -> WriteResult:
        await self._enter("append_order_history")
        if self._fails("append_order_history"):
            return WriteResult.failed(self.failure_reason)
        self.history.setdefault(entry.order_id, []).append(entry)
        self.feed.publish(Table.ORDER_UPDATES, ChangeType.INSERT, entry)
        return WriteResult.ok(entry)

    async def upsert_courier_location(self, location: CourierLocation) -> WriteResult:
        await self._enter("upsert_courier_location")
        if self._fails("upsert_courier_location"):
            return WriteResult.failed(self.failure_reason)
        key = (location.driver_id, location.order_id)
        change = ChangeType.UPDATE if key in self.courier_locations else ChangeType.INSERT
        self.courier_locations[key] = location
        self.feed.publish(Table.DRIVER_LOCATIONS, change, location)
        return WriteResult.ok(location)

    # -------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------
    async def read_chat_messages(self, room_id: str) -> list[ChatMessage]:
        await self._read("read_chat_messages", room_id)
        in_room = [message for message in self.messages.values() if message.room_id == room_id]
        return sorted(in_room, key=lambda message: message.timestamp)

    async def subscribe_room(
        self,
        room_id: str,
        *,
        on_message_insert,
        on_message_update,
        on_connection_state,
    ) -> ChannelHandle:
        await self._enter("subscribe_room")
        channel = room_channel(
            self.feed,
            room_id,
            on_message_insert=on_message_insert,
            on_message_update=on_message_update,
            on_connection_state=on_connection_state,
        )
        return self.feed.open(channel, ack=self.handshake)

    async def insert_chat_message(self, message: ChatMessage) -> WriteResult:
        await self._enter("insert_chat_message")
        if self._fails("insert_chat_message"):
            return WriteResult.failed(self.failure_reason)
        self.messages[message.id] = message
        self.feed.publish(Table.CHAT_MESSAGES, ChangeType.INSERT, message)
        return WriteResult.ok(message)

    async def mark_message_read(self, message_id: str) -> WriteResult:
        await self._enter("mark_message_read")
        if self._fails("mark_message_read"):
            return WriteResult.failed(self.failure_reason)
        message = self.messages.get(message_id)
        if message is None:
            return WriteResult.failed(f"Message {message_id} not found")
        updated = replace(message, read=True)
        self.messages[message_id] = updated
        self.feed.publish(Table.CHAT_MESSAGES, ChangeType.UPDATE, updated)
        return WriteResult.ok(updated)
