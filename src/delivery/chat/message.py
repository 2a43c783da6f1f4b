"""Room message aggregate — one chat line in a support or delivery room."""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Identifier, String, Text

from delivery.domain import delivery


class SenderType(Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    SUPPORT = "support"


@delivery.aggregate
class RoomMessage:
    room_id = Identifier(required=True)
    content = Text(required=True)
    sender_id = Identifier(required=True)
    sender_name = String(max_length=200, default="")
    sender_type = String(max_length=20, choices=SenderType, default=SenderType.CUSTOMER.value)
    timestamp = DateTime(required=True)
    order_id = Identifier()
    read = Boolean(default=False)

    @classmethod
    def post(
        cls,
        room_id: str,
        content: str,
        sender_id: str,
        sender_type: str = SenderType.CUSTOMER.value,
        sender_name: str = "",
        order_id: str | None = None,
        timestamp: datetime | None = None,
        message_id: str | None = None,
    ):
        kwargs = {"id": message_id} if message_id else {}
        return cls(
            **kwargs,
            room_id=room_id,
            content=content,
            sender_id=sender_id,
            sender_name=sender_name,
            sender_type=sender_type,
            order_id=order_id,
            timestamp=timestamp or datetime.now(UTC),
            read=False,
        )

    def mark_read(self) -> None:
        self.read = True
