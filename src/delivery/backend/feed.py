"""In-process change feed — pushes committed row changes to open channels.

A channel is bound to one topic (``order_<id>``, ``chat_<id>``) and carries
bindings of the form *(table, change type, column = value) → callback*. The
handshake acknowledgement is scheduled on the running event loop, so the
owner only learns it is subscribed once the loop gets a turn. Changes are
delivered only to channels that have been acknowledged as subscribed.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from delivery.backend.port import ChangeType, ChannelHandle, OnConnectionState, SubscribeStatus, Table

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Binding:
    table: Table
    change: ChangeType
    column: str
    value: str
    callback: Callable[[Any], None]

    def matches(self, table: Table, change: ChangeType, record: Any) -> bool:
        return (
            self.table == table
            and self.change == change
            and str(getattr(record, self.column, None)) == self.value
        )


class Channel:
    def __init__(self, topic: str, on_status: OnConnectionState):
        self.handle = ChannelHandle(topic=topic)
        self.status: SubscribeStatus | None = None
        self.closed = False
        self._on_status = on_status
        self._bindings: list[_Binding] = []

    def on(self, table: Table, change: ChangeType, column: str, value: str, callback) -> "Channel":
        self._bindings.append(_Binding(table, change, column, str(value), callback))
        return self

    @property
    def subscribed(self) -> bool:
        return not self.closed and self.status == SubscribeStatus.SUBSCRIBED

    def report(self, status: SubscribeStatus) -> None:
        if self.closed:
            return
        self.status = status
        self._on_status(status)

    def deliver(self, table: Table, change: ChangeType, record: Any) -> int:
        delivered = 0
        for binding in self._bindings:
            if self.closed:
                break
            if binding.matches(table, change, record):
                binding.callback(record)
                delivered += 1
        return delivered


class ChangeFeed:
    def __init__(self):
        self._channels: dict[str, Channel] = {}

    def channel(self, topic: str, on_status: OnConnectionState) -> Channel:
        return Channel(topic, on_status)

    @property
    def active_channels(self) -> list[ChannelHandle]:
        return [channel.handle for channel in self._channels.values()]

    def open(self, channel: Channel, ack: SubscribeStatus = SubscribeStatus.SUBSCRIBED) -> ChannelHandle:
        """Register the channel and schedule its handshake acknowledgement."""
        self._channels[channel.handle.channel_id] = channel
        asyncio.get_running_loop().call_soon(self._acknowledge, channel, ack)
        logger.debug("Channel opened", topic=channel.handle.topic, channel_id=channel.handle.channel_id)
        return channel.handle

    def _acknowledge(self, channel: Channel, ack: SubscribeStatus) -> None:
        if channel.closed:
            return
        if ack != SubscribeStatus.SUBSCRIBED:
            self._channels.pop(channel.handle.channel_id, None)
            logger.warning("Channel handshake failed", topic=channel.handle.topic, status=ack.value)
        channel.report(ack)

    def close(self, handle: ChannelHandle) -> bool:
        channel = self._channels.pop(handle.channel_id, None)
        if channel is None:
            return False
        channel.closed = True
        logger.debug("Channel closed", topic=handle.topic, channel_id=handle.channel_id)
        return True

    def drop(self, handle: ChannelHandle, status: SubscribeStatus = SubscribeStatus.CLOSED) -> bool:
        """Sever a channel from the transport side, telling its owner why."""
        channel = self._channels.pop(handle.channel_id, None)
        if channel is None:
            return False
        channel.report(status)
        channel.closed = True
        logger.info("Channel dropped", topic=handle.topic, status=status.value)
        return True

    def publish(self, table: Table, change: ChangeType, record: Any) -> int:
        """Push a committed change to every subscribed channel bound to it."""
        delivered = 0
        for channel in list(self._channels.values()):
            if not channel.subscribed:
                continue
            try:
                delivered += channel.deliver(table, change, record)
            except Exception:
                logger.exception(
                    "Channel callback failed",
                    topic=channel.handle.topic,
                    table=table.value,
                    change=change.value,
                )
        return delivered


def order_channel(
    feed: ChangeFeed,
    order_id: str,
    *,
    on_history_insert,
    on_order_update,
    on_courier_insert,
    on_courier_update,
    on_connection_state: OnConnectionState,
) -> Channel:
    """Channel carrying everything a live order view needs."""
    return (
        feed.channel(f"order_{order_id}", on_connection_state)
        .on(Table.ORDER_UPDATES, ChangeType.INSERT, "order_id", order_id, on_history_insert)
        .on(Table.ORDERS, ChangeType.UPDATE, "order_id", order_id, on_order_update)
        .on(Table.DRIVER_LOCATIONS, ChangeType.INSERT, "order_id", order_id, on_courier_insert)
        .on(Table.DRIVER_LOCATIONS, ChangeType.UPDATE, "order_id", order_id, on_courier_update)
    )


def room_channel(
    feed: ChangeFeed,
    room_id: str,
    *,
    on_message_insert,
    on_message_update,
    on_connection_state: OnConnectionState,
) -> Channel:
    return (
        feed.channel(f"chat_{room_id}", on_connection_state)
        .on(Table.CHAT_MESSAGES, ChangeType.INSERT, "room_id", room_id, on_message_insert)
        .on(Table.CHAT_MESSAGES, ChangeType.UPDATE, "room_id", room_id, on_message_update)
    )
