"""Live views — client-side projections kept current by a snapshot plus a channel.

A live view is started for one key (an order id, a chat room id). Starting
opens the key's channel and loads a snapshot in a background task; stopping
releases the channel, cancels the load and discards the state. Each start
bumps a generation counter, and every channel callback and snapshot result
is checked against it before touching state, so nothing from a previous
start ever lands in the current one.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any

import structlog

from delivery.backend.port import ChannelHandle, DeliveryBackend, SubscribeStatus, WriteResult

logger = structlog.get_logger(__name__)


class ConnectionState(Enum):
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    DISCONNECTED = "disconnected"


Listener = Callable[[Any], None]


class LiveView:
    """Base lifecycle. Subclasses provide state, subscription and snapshot load."""

    kind = "view"

    def __init__(self, backend: DeliveryBackend):
        self.backend = backend
        self._state: Any = None
        self._generation = 0
        self._handle: ChannelHandle | None = None
        self._load_task: asyncio.Task | None = None
        self._listeners: list[Listener] = []

    # -------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------
    def _new_state(self, key: str) -> Any:
        raise NotImplementedError

    async def _subscribe(self, key: str, generation: int) -> ChannelHandle:
        raise NotImplementedError

    async def _load(self, key: str, generation: int) -> None:
        raise NotImplementedError

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    @property
    def active(self) -> bool:
        return self._state is not None

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation and self._state is not None

    async def start(self, key: str) -> None:
        """Begin tracking ``key``, replacing whatever was tracked before."""
        await self.stop()
        self._generation += 1
        generation = self._generation
        self._state = self._new_state(key)
        self._notify()

        handle = None
        try:
            handle = await self._subscribe(key, generation)
        except Exception as exc:
            logger.error("Subscription failed", kind=self.kind, key=key, error=str(exc))
            self._on_connection(generation, SubscribeStatus.CHANNEL_ERROR)

        if generation != self._generation:
            # Superseded by another start/stop while the channel was opening
            if handle is not None:
                await self._release(handle)
            return

        self._handle = handle
        self._load_task = asyncio.create_task(self._run_load(key, generation))

    async def stop(self) -> None:
        """Stop tracking. Safe to call when not started."""
        self._generation += 1
        handle, self._handle = self._handle, None
        task, self._load_task = self._load_task, None
        if task is not None and not task.done():
            task.cancel()
        if self._state is not None:
            self._state = None
            self._notify()
        if handle is not None:
            await self._release(handle)

    @asynccontextmanager
    async def session(self, key: str) -> AsyncIterator["LiveView"]:
        """Track ``key`` for the duration of the block."""
        await self.start(key)
        try:
            yield self
        finally:
            await self.stop()

    async def wait_loaded(self) -> None:
        """Wait for the current snapshot load to finish, however it ends."""
        task = self._load_task
        if task is not None:
            await asyncio.wait({task})

    async def _release(self, handle: ChannelHandle) -> None:
        try:
            await self.backend.unsubscribe(handle)
        except Exception as exc:
            logger.error("Unsubscribe failed", kind=self.kind, topic=handle.topic, error=str(exc))

    async def _run_load(self, key: str, generation: int) -> None:
        try:
            await self._load(key, generation)
        except Exception as exc:
            if self.is_current(generation):
                logger.error("Snapshot load failed", kind=self.kind, key=key, error=str(exc))
                self._state.load_error = exc
        finally:
            if self.is_current(generation):
                self._state.loading = False
                self._notify()

    async def _write(self, operation: str, call, *args) -> WriteResult:
        """Run a backend write; unexpected exceptions become failed results."""
        try:
            result = await call(*args)
        except Exception as exc:
            logger.error("Backend write raised", kind=self.kind, operation=operation, error=str(exc))
            return WriteResult.failed(str(exc))
        if not result.success:
            logger.warning("Backend write failed", kind=self.kind, operation=operation, error=result.error)
        return result

    # -------------------------------------------------------------------
    # Channel callbacks
    # -------------------------------------------------------------------
    def _on_connection(self, generation: int, status: SubscribeStatus) -> None:
        if not self.is_current(generation):
            return
        if status == SubscribeStatus.SUBSCRIBED:
            self._state.connection = ConnectionState.SUBSCRIBED
        else:
            self._state.connection = ConnectionState.DISCONNECTED
            logger.warning("Channel not connected", kind=self.kind, status=status.value)
        self._notify()

    def _guarded(self, generation: int, apply: Callable[[Any], None]) -> Callable[[Any], None]:
        """Wrap a change handler so it only applies to the start that opened the channel."""

        def handler(record: Any) -> None:
            if not self.is_current(generation):
                return
            apply(record)
            self._notify()

        return handler

    # -------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------
    def add_listener(self, callback: Listener) -> Callable[[], None]:
        """Call ``callback`` with the current state after every change. Returns a remover."""
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Live view listener failed", kind=self.kind)
