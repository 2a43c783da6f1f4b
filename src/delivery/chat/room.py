"""Live chat room view for one participant."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from delivery.backend.port import ChannelHandle, ChatMessage, DeliveryBackend, WriteResult
from delivery.live import ConnectionState, LiveView


@dataclass
class RoomView:
    room_id: str
    messages: list[ChatMessage] = field(default_factory=list)
    loading: bool = True
    connection: ConnectionState = ConnectionState.CONNECTING
    load_error: Exception | None = None

    @property
    def connected(self) -> bool:
        return self.connection == ConnectionState.SUBSCRIBED


def compose_message(
    room_id: str,
    content: str,
    sender_id: str,
    sender_type: str = "customer",
    sender_name: str = "",
    order_id: str | None = None,
) -> ChatMessage:
    return ChatMessage(
        id=str(uuid4()),
        room_id=room_id,
        content=content,
        sender_id=sender_id,
        sender_name=sender_name,
        sender_type=sender_type,
        timestamp=datetime.now(UTC),
        order_id=order_id,
    )


class ChatRoomSync(LiveView):
    """Messages of a room, kept current for the participant ``user_id``."""

    kind = "chat"

    def __init__(self, backend: DeliveryBackend, user_id: str, order_id: str | None = None):
        super().__init__(backend)
        self.user_id = user_id
        self.order_id = order_id

    @property
    def room(self) -> RoomView | None:
        return self._state

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._state.messages) if self._state is not None else []

    def _new_state(self, room_id: str) -> RoomView:
        return RoomView(room_id=room_id)

    async def _subscribe(self, room_id: str, generation: int) -> ChannelHandle:
        return await self.backend.subscribe_room(
            room_id,
            on_message_insert=self._guarded(generation, self._apply_insert),
            on_message_update=self._guarded(generation, self._apply_update),
            on_connection_state=lambda status: self._on_connection(generation, status),
        )

    async def _load(self, room_id: str, generation: int) -> None:
        messages = await self.backend.read_chat_messages(room_id)
        if not self.is_current(generation):
            return
        self._state.messages = list(messages)

    def _apply_insert(self, message: ChatMessage) -> None:
        self._state.messages.append(message)

    def _apply_update(self, message: ChatMessage) -> None:
        self._state.messages = [message if existing.id == message.id else existing for existing in self._state.messages]

    async def send_message(self, content: str, sender_type: str = "customer", sender_name: str = "") -> WriteResult:
        if self._state is None:
            return WriteResult.failed("Not in a chat room")
        message = compose_message(
            self._state.room_id,
            content,
            self.user_id,
            sender_type=sender_type,
            sender_name=sender_name,
            order_id=self.order_id,
        )
        return await self._write("insert_chat_message", self.backend.insert_chat_message, message)

    async def mark_as_read(self, message_id: str) -> WriteResult:
        return await self._write("mark_message_read", self.backend.mark_message_read, message_id)

    def unread_count(self) -> int:
        return sum(1 for message in self.messages if not message.read and message.sender_id != self.user_id)
