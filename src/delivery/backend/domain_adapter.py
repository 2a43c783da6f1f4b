"""Domain-backed delivery backend — the store lives in the delivery Protean domain.

Every call runs inside the domain's context. Writes go through repositories
(or a command, for the atomic status change) and, once committed, are
published on the adapter's ``ChangeFeed`` as INSERT/UPDATE changes so live
views subscribed in the same process see them.
"""

from datetime import UTC, datetime

import structlog
from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from delivery.backend.feed import ChangeFeed, order_channel, room_channel
from delivery.backend.port import (
    ChangeType,
    ChannelHandle,
    ChatMessage,
    CourierLocation,
    DeliveryBackend,
    GeoPoint,
    OrderNotFound,
    OrderState,
    OrderStatusUpdate,
    Table,
    WriteResult,
)
from delivery.chat.message import RoomMessage
from delivery.courier.position import CourierPosition, position_key
from delivery.order.history import OrderHistoryEntry
from delivery.order.order import Coordinates, Order
from delivery.order.registration import RegisterOrder
from delivery.order.status_change import RecordStatusChange

logger = structlog.get_logger(__name__)


def _describe(exc: ValidationError) -> str:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return "; ".join(f"{key}: {', '.join(str(m) for m in value)}" for key, value in messages.items())
    return str(exc)


def _utc(value: datetime | None) -> datetime | None:
    """RDBMS providers hand back naive datetimes; everything stored is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _point(coordinates: Coordinates | None) -> GeoPoint | None:
    if coordinates is None or coordinates.latitude is None:
        return None
    return GeoPoint(lat=coordinates.latitude, lng=coordinates.longitude)


def _order_state(order: Order) -> OrderState:
    return OrderState(
        order_id=str(order.order_id),
        status=order.status,
        updated_at=_utc(order.updated_at),
        destination=_point(order.destination),
    )


def _status_update(entry: OrderHistoryEntry) -> OrderStatusUpdate:
    return OrderStatusUpdate(
        id=str(entry.id),
        order_id=str(entry.order_id),
        status=entry.status,
        message=entry.message,
        timestamp=_utc(entry.timestamp),
        location=_point(entry.location),
        estimated_delivery=_utc(entry.estimated_delivery),
    )


def _courier_location(position: CourierPosition) -> CourierLocation:
    return CourierLocation(
        driver_id=str(position.driver_id),
        order_id=str(position.order_id),
        lat=position.latitude,
        lng=position.longitude,
        timestamp=_utc(position.timestamp),
        heading=position.heading,
        speed=position.speed,
    )


def _chat_message(message: RoomMessage) -> ChatMessage:
    return ChatMessage(
        id=str(message.id),
        room_id=str(message.room_id),
        content=message.content,
        sender_id=str(message.sender_id),
        sender_name=message.sender_name or "",
        sender_type=message.sender_type,
        timestamp=_utc(message.timestamp),
        order_id=str(message.order_id) if message.order_id else None,
        read=bool(message.read),
    )


def _coordinates(point: GeoPoint | None) -> Coordinates | None:
    if point is None:
        return None
    return Coordinates(latitude=point.lat, longitude=point.lng)


class DomainBackend(DeliveryBackend):
    supports_atomic_status_change = True

    def __init__(self, domain: Domain | None = None, feed: ChangeFeed | None = None):
        if domain is None:
            from delivery.domain import delivery as domain
        self.domain = domain
        self.feed = feed or ChangeFeed()

    def _repo(self, aggregate_cls):
        return self.domain.repository_for(aggregate_cls)

    def _order_exists(self, order_id: str) -> bool:
        try:
            self._repo(Order).get(order_id)
        except ObjectNotFoundError:
            return False
        return True

    # -------------------------------------------------------------------
    # Order tracking reads
    # -------------------------------------------------------------------
    async def read_order(self, order_id: str) -> OrderState:
        with self.domain.domain_context():
            try:
                return _order_state(self._repo(Order).get(order_id))
            except ObjectNotFoundError:
                raise OrderNotFound(order_id) from None

    async def read_order_history(self, order_id: str) -> list[OrderStatusUpdate]:
        with self.domain.domain_context():
            entries = self._repo(OrderHistoryEntry)._dao.query.filter(order_id=order_id).all().items
        return sorted((_status_update(entry) for entry in entries), key=lambda update: update.timestamp)

    async def read_latest_courier_location(self, order_id: str) -> CourierLocation | None:
        with self.domain.domain_context():
            positions = self._repo(CourierPosition)._dao.query.filter(order_id=order_id).all().items
        if not positions:
            return None
        return _courier_location(max(positions, key=lambda position: position.timestamp))

    # -------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------
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
        channel = order_channel(
            self.feed,
            order_id,
            on_history_insert=on_history_insert,
            on_order_update=on_order_update,
            on_courier_insert=on_courier_insert,
            on_courier_update=on_courier_update,
            on_connection_state=on_connection_state,
        )
        return self.feed.open(channel)

    async def subscribe_room(
        self,
        room_id: str,
        *,
        on_message_insert,
        on_message_update,
        on_connection_state,
    ) -> ChannelHandle:
        channel = room_channel(
            self.feed,
            room_id,
            on_message_insert=on_message_insert,
            on_message_update=on_message_update,
            on_connection_state=on_connection_state,
        )
        return self.feed.open(channel)

    async def unsubscribe(self, handle: ChannelHandle) -> None:
        self.feed.close(handle)

    # -------------------------------------------------------------------
    # Order tracking writes
    # -------------------------------------------------------------------
    async def register_order(
        self,
        order_id: str,
        customer_id: str | None = None,
        destination: GeoPoint | None = None,
    ) -> WriteResult:
        with self.domain.domain_context():
            try:
                command = RegisterOrder(
                    order_id=order_id,
                    customer_id=customer_id,
                    destination_latitude=destination.lat if destination else None,
                    destination_longitude=destination.lng if destination else None,
                )
                self.domain.process(command, asynchronous=False)
            except ValidationError as exc:
                return WriteResult.failed(_describe(exc))
            state = _order_state(self._repo(Order).get(order_id))

        logger.info("Order registered", order_id=order_id)
        return WriteResult.ok(state)

    async def write_order_status(self, order_id: str, status: str) -> WriteResult:
        with self.domain.domain_context():
            repo = self._repo(Order)
            try:
                order = repo.get(order_id)
                order.change_status(status)
            except ObjectNotFoundError:
                return WriteResult.failed(f"Order {order_id} not found")
            except ValidationError as exc:
                return WriteResult.failed(_describe(exc))
            repo.add(order)
            state = _order_state(order)

        self.feed.publish(Table.ORDERS, ChangeType.UPDATE, state)
        return WriteResult.ok(state)

    async def append_order_history(self, entry: OrderStatusUpdate) -> WriteResult:
        with self.domain.domain_context():
            if not self._order_exists(entry.order_id):
                return WriteResult.failed(f"Order {entry.order_id} not found")
            try:
                stored = OrderHistoryEntry.record(
                    order_id=entry.order_id,
                    status=entry.status,
                    message=entry.message,
                    timestamp=entry.timestamp,
                    location=_coordinates(entry.location),
                    estimated_delivery=entry.estimated_delivery,
                    entry_id=entry.id,
                )
            except ValidationError as exc:
                return WriteResult.failed(_describe(exc))
            self._repo(OrderHistoryEntry).add(stored)
            update = _status_update(stored)

        self.feed.publish(Table.ORDER_UPDATES, ChangeType.INSERT, update)
        return WriteResult.ok(update)

    async def record_status_change(self, entry: OrderStatusUpdate) -> WriteResult:
        with self.domain.domain_context():
            try:
                command = RecordStatusChange(
                    order_id=entry.order_id,
                    entry_id=entry.id,
                    status=entry.status,
                    message=entry.message,
                    timestamp=entry.timestamp,
                    latitude=entry.location.lat if entry.location else None,
                    longitude=entry.location.lng if entry.location else None,
                    estimated_delivery=entry.estimated_delivery,
                )
                entry_id = self.domain.process(command, asynchronous=False)
            except ObjectNotFoundError:
                return WriteResult.failed(f"Order {entry.order_id} not found")
            except ValidationError as exc:
                return WriteResult.failed(_describe(exc))
            state = _order_state(self._repo(Order).get(entry.order_id))
            update = _status_update(self._repo(OrderHistoryEntry).get(entry_id))

        logger.info("Status change recorded", order_id=entry.order_id, status=state.status)
        self.feed.publish(Table.ORDERS, ChangeType.UPDATE, state)
        self.feed.publish(Table.ORDER_UPDATES, ChangeType.INSERT, update)
        return WriteResult.ok(update)

    async def upsert_courier_location(self, location: CourierLocation) -> WriteResult:
        with self.domain.domain_context():
            repo = self._repo(CourierPosition)
            try:
                try:
                    position = repo.get(position_key(location.driver_id, location.order_id))
                except ObjectNotFoundError:
                    change = ChangeType.INSERT
                    position = CourierPosition.report(
                        driver_id=location.driver_id,
                        order_id=location.order_id,
                        latitude=location.lat,
                        longitude=location.lng,
                        timestamp=location.timestamp,
                        heading=location.heading,
                        speed=location.speed,
                    )
                else:
                    change = ChangeType.UPDATE
                    position.move_to(
                        latitude=location.lat,
                        longitude=location.lng,
                        timestamp=location.timestamp,
                        heading=location.heading,
                        speed=location.speed,
                    )
            except ValidationError as exc:
                return WriteResult.failed(_describe(exc))
            repo.add(position)
            stored = _courier_location(position)

        self.feed.publish(Table.DRIVER_LOCATIONS, change, stored)
        return WriteResult.ok(stored)

    # -------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------
    async def read_chat_messages(self, room_id: str) -> list[ChatMessage]:
        with self.domain.domain_context():
            messages = self._repo(RoomMessage)._dao.query.filter(room_id=room_id).all().items
        return sorted((_chat_message(message) for message in messages), key=lambda message: message.timestamp)

    async def insert_chat_message(self, message: ChatMessage) -> WriteResult:
        with self.domain.domain_context():
            try:
                stored = RoomMessage.post(
                    room_id=message.room_id,
                    content=message.content,
                    sender_id=message.sender_id,
                    sender_type=message.sender_type,
                    sender_name=message.sender_name,
                    order_id=message.order_id,
                    timestamp=message.timestamp,
                    message_id=message.id,
                )
            except ValidationError as exc:
                return WriteResult.failed(_describe(exc))
            self._repo(RoomMessage).add(stored)
            record = _chat_message(stored)

        self.feed.publish(Table.CHAT_MESSAGES, ChangeType.INSERT, record)
        return WriteResult.ok(record)

    async def mark_message_read(self, message_id: str) -> WriteResult:
        with self.domain.domain_context():
            repo = self._repo(RoomMessage)
            try:
                message = repo.get(message_id)
            except ObjectNotFoundError:
                return WriteResult.failed(f"Message {message_id} not found")
            message.mark_read()
            repo.add(message)
            record = _chat_message(message)

        self.feed.publish(Table.CHAT_MESSAGES, ChangeType.UPDATE, record)
        return WriteResult.ok(record)
