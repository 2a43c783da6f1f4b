"""Live order tracking — keeps one order's status, history and courier position current.

``LiveOrderTracker.start(order_id)`` subscribes to the order's channel and
loads a snapshot concurrently. Live events apply as soon as they arrive; how
the snapshot is reconciled with events already applied is governed by
``MergePolicy``.
"""

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

import structlog

from delivery.backend.port import (
    ChannelHandle,
    CourierLocation,
    DeliveryBackend,
    GeoPoint,
    OrderState,
    OrderStatusUpdate,
    WriteResult,
)
from delivery.live import ConnectionState, LiveView
from delivery.tracking.progress import haversine_km, status_progress

logger = structlog.get_logger(__name__)


class MergePolicy(Enum):
    """How a snapshot that completes after live events is reconciled.

    OVERWRITE: the snapshot replaces status, history and courier location.
    RECENCY: history is merged by id, status and courier location keep the
    newer value, and live courier pings older than the current one are dropped.
    """

    OVERWRITE = "overwrite"
    RECENCY = "recency"

    @classmethod
    def from_env(cls) -> "MergePolicy":
        return cls(os.environ.get("TRACKING_MERGE_POLICY", cls.OVERWRITE.value).lower())


@dataclass
class OrderProjection:
    order_id: str
    status: str = "pending"
    history: list[OrderStatusUpdate] = field(default_factory=list)
    courier_location: CourierLocation | None = None
    destination: GeoPoint | None = None
    loading: bool = True
    connection: ConnectionState = ConnectionState.CONNECTING
    load_error: Exception | None = None
    # When the current status was observed, from the row or event that set it
    status_updated_at: datetime | None = None

    @property
    def connected(self) -> bool:
        return self.connection == ConnectionState.SUBSCRIBED


class LiveOrderTracker(LiveView):
    kind = "order"

    def __init__(self, backend: DeliveryBackend, merge_policy: MergePolicy | None = None):
        super().__init__(backend)
        self.merge_policy = merge_policy or MergePolicy.from_env()
        self.pending_history: list[OrderStatusUpdate] = []

    @property
    def projection(self) -> OrderProjection | None:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is not None and self._state.connected

    # -------------------------------------------------------------------
    # Subscription and snapshot
    # -------------------------------------------------------------------
    def _new_state(self, order_id: str) -> OrderProjection:
        return OrderProjection(order_id=order_id)

    async def _subscribe(self, order_id: str, generation: int) -> ChannelHandle:
        return await self.backend.subscribe_order(
            order_id,
            on_history_insert=self._guarded(generation, self._apply_history_insert),
            on_order_update=self._guarded(generation, self._apply_order_update),
            on_courier_insert=self._guarded(generation, self._apply_courier_location),
            on_courier_update=self._guarded(generation, self._apply_courier_location),
            on_connection_state=lambda status: self._on_connection(generation, status),
        )

    async def _load(self, order_id: str, generation: int) -> None:
        order = await self.backend.read_order(order_id)
        if not self.is_current(generation):
            return
        history = await self.backend.read_order_history(order_id)
        if not self.is_current(generation):
            return
        try:
            courier = await self.backend.read_latest_courier_location(order_id)
        except Exception as exc:
            logger.warning("Courier location unavailable", order_id=order_id, error=str(exc))
            courier = None
        if not self.is_current(generation):
            return

        self._apply_snapshot(order, history, courier)
        logger.debug(
            "Snapshot applied",
            order_id=order_id,
            status=self._state.status,
            history=len(self._state.history),
            policy=self.merge_policy.value,
        )

    def _apply_snapshot(
        self,
        order: OrderState,
        history: list[OrderStatusUpdate],
        courier: CourierLocation | None,
    ) -> None:
        projection = self._state
        if order.destination is not None:
            projection.destination = order.destination

        if self.merge_policy == MergePolicy.OVERWRITE:
            projection.status = order.status
            projection.status_updated_at = order.updated_at
            projection.history = list(history)
            projection.courier_location = courier
            return

        known = {entry.id for entry in history}
        live_only = [entry for entry in projection.history if entry.id not in known]
        projection.history = sorted([*history, *live_only], key=lambda entry: entry.timestamp)

        if _is_newer(order.updated_at, projection.status_updated_at):
            projection.status = order.status
            projection.status_updated_at = order.updated_at

        if courier is not None and (
            projection.courier_location is None or courier.timestamp >= projection.courier_location.timestamp
        ):
            projection.courier_location = courier

    # -------------------------------------------------------------------
    # Live events
    # -------------------------------------------------------------------
    def _apply_history_insert(self, entry: OrderStatusUpdate) -> None:
        if self.merge_policy == MergePolicy.RECENCY and any(seen.id == entry.id for seen in self._state.history):
            return
        self._state.history.append(entry)
        self._state.status = entry.status
        self._state.status_updated_at = entry.timestamp

    def _apply_order_update(self, order: OrderState) -> None:
        self._state.status = order.status
        self._state.status_updated_at = order.updated_at
        if order.destination is not None:
            self._state.destination = order.destination

    def _apply_courier_location(self, location: CourierLocation) -> None:
        current = self._state.courier_location
        if (
            self.merge_policy == MergePolicy.RECENCY
            and current is not None
            and location.timestamp < current.timestamp
        ):
            logger.debug("Stale courier location ignored", order_id=location.order_id, driver_id=location.driver_id)
            return
        self._state.courier_location = location

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    async def submit_status_update(
        self,
        order_id: str,
        new_status: str,
        message: str,
        location: GeoPoint | None = None,
        estimated_delivery: datetime | None = None,
    ) -> WriteResult:
        """Set the order's status and append a history entry describing it."""
        entry = OrderStatusUpdate.new(
            order_id=order_id,
            status=new_status,
            message=message,
            location=location,
            estimated_delivery=estimated_delivery,
        )

        if self.backend.supports_atomic_status_change:
            return await self._write("record_status_change", self.backend.record_status_change, entry)

        status_result = await self._write("write_order_status", self.backend.write_order_status, order_id, new_status)
        if not status_result.success:
            return status_result

        history_result = await self._write("append_order_history", self.backend.append_order_history, entry)
        if not history_result.success:
            self.pending_history.append(entry)
            logger.warning(
                "Status written without history entry",
                order_id=order_id,
                status=new_status,
                entry_id=entry.id,
            )
            return WriteResult.failed(history_result.error, partial=True)
        return history_result

    async def retry_pending_history(self) -> list[WriteResult]:
        """Re-append history entries left behind by partial status updates."""
        entries, self.pending_history = self.pending_history, []
        results = []
        remaining = []
        for entry in entries:
            result = await self._write("append_order_history", self.backend.append_order_history, entry)
            results.append(result)
            if not result.success:
                remaining.append(entry)
        self.pending_history = remaining + self.pending_history
        return results

    async def submit_courier_location(
        self,
        order_id: str,
        driver_id: str,
        lat: float,
        lng: float,
        heading: float | None = None,
        speed: float | None = None,
    ) -> WriteResult:
        location = CourierLocation(
            driver_id=driver_id,
            order_id=order_id,
            lat=lat,
            lng=lng,
            timestamp=datetime.now(UTC),
            heading=heading,
            speed=speed,
        )
        return await self._write("upsert_courier_location", self.backend.upsert_courier_location, location)

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    def current_progress(self) -> float:
        if self._state is None:
            return 0
        return status_progress(self._state.status)

    def estimated_delivery(self) -> datetime | None:
        if self._state is None or not self._state.history:
            return None
        return self._state.history[-1].estimated_delivery

    def estimated_distance(self, destination: GeoPoint | None = None) -> float | None:
        """Kilometres between the courier and ``destination`` (default: the order's)."""
        if self._state is None:
            return None
        destination = destination or self._state.destination
        courier = self._state.courier_location
        if destination is None or courier is None:
            return None
        return haversine_km(courier.point, destination)


def _is_newer(candidate: datetime | None, current: datetime | None) -> bool:
    if current is None:
        return True
    if candidate is None:
        return False
    return candidate >= current
