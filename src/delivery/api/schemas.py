"""Pydantic request/response schemas for the delivery tracking API.

External contracts, kept separate from the backend records and domain
commands they are translated into.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class GeoPointSchema(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


# ---------------------------------------------------------------------------
# Order tracking requests
# ---------------------------------------------------------------------------
class RegisterOrderRequest(BaseModel):
    order_id: str
    customer_id: str | None = None
    destination: GeoPointSchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_id": "ord-1001",
                    "customer_id": "cust-001",
                    "destination": {"lat": 13.7563, "lng": 100.5018},
                }
            ]
        }
    }


class StatusUpdateRequest(BaseModel):
    status: str
    message: str = ""
    location: GeoPointSchema | None = None
    estimated_delivery: datetime | None = None


class CourierLocationRequest(BaseModel):
    driver_id: str
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    heading: float | None = Field(default=None, ge=0, le=360)
    speed: float | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Order tracking responses
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class StatusUpdateResponse(BaseModel):
    id: str
    order_id: str
    status: str
    message: str
    timestamp: datetime
    location: GeoPointSchema | None = None
    estimated_delivery: datetime | None = None


class CourierLocationResponse(BaseModel):
    driver_id: str
    order_id: str
    lat: float
    lng: float
    timestamp: datetime
    heading: float | None = None
    speed: float | None = None


class TrackingResponse(BaseModel):
    order_id: str
    status: str
    progress: float
    history: list[StatusUpdateResponse]
    courier_location: CourierLocationResponse | None = None
    destination: GeoPointSchema | None = None
    estimated_delivery: datetime | None = None
    distance_km: float | None = None
    distance_label: str | None = None


class RetryResponse(BaseModel):
    retried: int
    recovered: int
    pending: int


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
class SendMessageRequest(BaseModel):
    sender_id: str
    content: str = Field(min_length=1)
    sender_type: str = "customer"
    sender_name: str = ""
    order_id: str | None = None


class ChatMessageResponse(BaseModel):
    id: str
    room_id: str
    content: str
    sender_id: str
    sender_name: str
    sender_type: str
    timestamp: datetime
    order_id: str | None = None
    read: bool


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Backend configuration (non-production)
# ---------------------------------------------------------------------------
class ConfigureBackendRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Backend unavailable"
    failing: list[str] = Field(default_factory=list)


class BackendConfigResponse(BaseModel):
    backend: str
    should_succeed: bool
    failure_reason: str
    failing: list[str]
