"""FastAPI routes for delivery tracking — orders, courier pings and chat rooms."""

import os

from fastapi import APIRouter, Depends, HTTPException, Request

from delivery.api.schemas import (
    BackendConfigResponse,
    ChatMessageResponse,
    ConfigureBackendRequest,
    CourierLocationRequest,
    CourierLocationResponse,
    GeoPointSchema,
    OrderIdResponse,
    RegisterOrderRequest,
    RetryResponse,
    SendMessageRequest,
    StatusResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
    TrackingResponse,
)
from delivery.backend.fake_adapter import FakeBackend
from delivery.backend.port import (
    ChatMessage,
    CourierLocation,
    DeliveryBackend,
    GeoPoint,
    OrderNotFound,
    OrderStatusUpdate,
    WriteResult,
)
from delivery.chat.room import compose_message
from delivery.tracking.progress import format_distance
from delivery.tracking.synchronizer import LiveOrderTracker


def get_backend(request: Request) -> DeliveryBackend:
    """The backend the application root built at startup."""
    return request.app.state.backend


def get_tracker(request: Request) -> LiveOrderTracker:
    """Process-wide tracker used for writes; it owns the pending history queue."""
    state = request.app.state
    if getattr(state, "tracker", None) is None:
        state.tracker = LiveOrderTracker(get_backend(request))
    return state.tracker


def _point(point: GeoPointSchema | None) -> GeoPoint | None:
    return GeoPoint(lat=point.lat, lng=point.lng) if point is not None else None


def _point_schema(point: GeoPoint | None) -> GeoPointSchema | None:
    return GeoPointSchema(lat=point.lat, lng=point.lng) if point is not None else None


def _update_response(update: OrderStatusUpdate) -> StatusUpdateResponse:
    return StatusUpdateResponse(
        id=update.id,
        order_id=update.order_id,
        status=update.status,
        message=update.message,
        timestamp=update.timestamp,
        location=_point_schema(update.location),
        estimated_delivery=update.estimated_delivery,
    )


def _courier_response(location: CourierLocation) -> CourierLocationResponse:
    return CourierLocationResponse(
        driver_id=location.driver_id,
        order_id=location.order_id,
        lat=location.lat,
        lng=location.lng,
        timestamp=location.timestamp,
        heading=location.heading,
        speed=location.speed,
    )


def _message_response(message: ChatMessage) -> ChatMessageResponse:
    return ChatMessageResponse(
        id=message.id,
        room_id=message.room_id,
        content=message.content,
        sender_id=message.sender_id,
        sender_name=message.sender_name,
        sender_type=message.sender_type,
        timestamp=message.timestamp,
        order_id=message.order_id,
        read=message.read,
    )


def _raise_for_failure(result: WriteResult) -> None:
    if not result.success:
        raise HTTPException(status_code=409, detail={"error": result.error, "partial": result.partial})


async def _require_order(backend: DeliveryBackend, order_id: str) -> None:
    try:
        await backend.read_order(order_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found") from None


# ---------------------------------------------------------------------------
# Tracking Router
# ---------------------------------------------------------------------------
tracking_router = APIRouter(prefix="/orders", tags=["tracking"])


@tracking_router.post("", status_code=201, response_model=OrderIdResponse)
async def register_order(
    body: RegisterOrderRequest,
    backend: DeliveryBackend = Depends(get_backend),
) -> OrderIdResponse:
    """Open a placed order for tracking."""
    result = await backend.register_order(
        order_id=body.order_id,
        customer_id=body.customer_id,
        destination=_point(body.destination),
    )
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return OrderIdResponse(order_id=body.order_id)


@tracking_router.get("/{order_id}/tracking", response_model=TrackingResponse)
async def get_tracking(order_id: str, backend: DeliveryBackend = Depends(get_backend)) -> TrackingResponse:
    """Snapshot of the live tracking view: status, history, courier and ETA."""
    tracker = LiveOrderTracker(backend)
    async with tracker.session(order_id):
        await tracker.wait_loaded()
        projection = tracker.projection
        if isinstance(projection.load_error, OrderNotFound):
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
        if projection.load_error is not None:
            raise HTTPException(status_code=503, detail=str(projection.load_error))

        distance = tracker.estimated_distance()
        return TrackingResponse(
            order_id=order_id,
            status=projection.status,
            progress=tracker.current_progress(),
            history=[_update_response(update) for update in projection.history],
            courier_location=_courier_response(projection.courier_location) if projection.courier_location else None,
            destination=_point_schema(projection.destination),
            estimated_delivery=tracker.estimated_delivery(),
            distance_km=round(distance, 3) if distance is not None else None,
            distance_label=format_distance(distance) if distance is not None else None,
        )


@tracking_router.post("/{order_id}/updates", status_code=201, response_model=StatusUpdateResponse)
async def submit_status_update(
    order_id: str,
    body: StatusUpdateRequest,
    backend: DeliveryBackend = Depends(get_backend),
    tracker: LiveOrderTracker = Depends(get_tracker),
) -> StatusUpdateResponse:
    await _require_order(backend, order_id)
    result = await tracker.submit_status_update(
        order_id,
        body.status,
        body.message,
        location=_point(body.location),
        estimated_delivery=body.estimated_delivery,
    )
    _raise_for_failure(result)
    return _update_response(result.record)


@tracking_router.put("/{order_id}/courier-location", response_model=CourierLocationResponse)
async def submit_courier_location(
    order_id: str,
    body: CourierLocationRequest,
    backend: DeliveryBackend = Depends(get_backend),
    tracker: LiveOrderTracker = Depends(get_tracker),
) -> CourierLocationResponse:
    await _require_order(backend, order_id)
    result = await tracker.submit_courier_location(
        order_id,
        body.driver_id,
        body.lat,
        body.lng,
        heading=body.heading,
        speed=body.speed,
    )
    _raise_for_failure(result)
    return _courier_response(result.record)


@tracking_router.post("/pending-history/retry", response_model=RetryResponse)
async def retry_pending_history(tracker: LiveOrderTracker = Depends(get_tracker)) -> RetryResponse:
    """Re-append history entries left behind by partially failed status updates."""
    results = await tracker.retry_pending_history()
    return RetryResponse(
        retried=len(results),
        recovered=sum(1 for result in results if result.success),
        pending=len(tracker.pending_history),
    )


# ---------------------------------------------------------------------------
# Chat Router
# ---------------------------------------------------------------------------
chat_router = APIRouter(prefix="/rooms", tags=["chat"])


@chat_router.get("/{room_id}/messages", response_model=list[ChatMessageResponse])
async def list_messages(room_id: str, backend: DeliveryBackend = Depends(get_backend)) -> list[ChatMessageResponse]:
    messages = await backend.read_chat_messages(room_id)
    return [_message_response(message) for message in messages]


@chat_router.post("/{room_id}/messages", status_code=201, response_model=ChatMessageResponse)
async def send_message(
    room_id: str,
    body: SendMessageRequest,
    backend: DeliveryBackend = Depends(get_backend),
) -> ChatMessageResponse:
    message = compose_message(
        room_id,
        body.content,
        body.sender_id,
        sender_type=body.sender_type,
        sender_name=body.sender_name,
        order_id=body.order_id,
    )
    result = await backend.insert_chat_message(message)
    if not result.success:
        raise HTTPException(status_code=409, detail=result.error)
    return _message_response(result.record)


@chat_router.put("/{room_id}/messages/{message_id}/read", response_model=StatusResponse)
async def mark_message_read(
    room_id: str,
    message_id: str,
    backend: DeliveryBackend = Depends(get_backend),
) -> StatusResponse:
    messages = await backend.read_chat_messages(room_id)
    if not any(message.id == message_id for message in messages):
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found in room {room_id}")
    result = await backend.mark_message_read(message_id)
    if not result.success:
        raise HTTPException(status_code=404, detail=result.error)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Backend Router
# ---------------------------------------------------------------------------
backend_router = APIRouter(prefix="/backend", tags=["backend"])


@backend_router.post("/configure", response_model=BackendConfigResponse)
async def configure_backend(
    body: ConfigureBackendRequest,
    backend: DeliveryBackend = Depends(get_backend),
) -> BackendConfigResponse:
    """Configure the FakeBackend behaviour (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Backend configuration not available in production")

    if not isinstance(backend, FakeBackend):
        raise HTTPException(status_code=400, detail="Backend configuration only available for FakeBackend")

    backend.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
        failing=set(body.failing),
    )
    return BackendConfigResponse(
        backend=type(backend).__name__,
        should_succeed=backend.should_succeed,
        failure_reason=backend.failure_reason,
        failing=sorted(backend.failing),
    )
