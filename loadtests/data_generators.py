"""Faker-based data generators for Locust load test scenarios.

Payloads match the field names of the tracking API's Pydantic request
schemas and stay inside the ranges the domain validates (latitude,
longitude, heading, speed).
"""

import math
import random
import uuid
from datetime import UTC, datetime, timedelta

from faker import Faker

fake = Faker()

STATUS_FLOW = ["confirmed", "preparing", "ready", "on_way", "delivered"]

_STATUS_MESSAGES = {
    "confirmed": "Restaurant accepted the order",
    "preparing": "Your food is being prepared",
    "ready": "Order is ready for pickup",
    "on_way": "Courier is on the way",
    "delivered": "Order delivered",
    "cancelled": "Order was cancelled",
}


# ---------- Orders ----------


def unique_order_id() -> str:
    """Generate unique order IDs like 'ord-lt-a1b2c3d4'."""
    return f"ord-lt-{uuid.uuid4().hex[:8]}"


def unique_driver_id() -> str:
    return f"drv-lt-{uuid.uuid4().hex[:6]}"


def destination() -> dict:
    """A drop-off point inside a city-sized box."""
    lat, lng = fake.local_latlng(country_code="US", coords_only=True)
    return {"lat": float(lat), "lng": float(lng)}


def register_order_data() -> dict:
    """Generate RegisterOrderRequest payload."""
    return {
        "order_id": unique_order_id(),
        "customer_id": f"cust-lt-{uuid.uuid4().hex[:8]}",
        "destination": destination(),
    }


def status_update_data(status: str, with_eta: bool = False) -> dict:
    """Generate StatusUpdateRequest payload for ``status``."""
    payload = {"status": status, "message": _STATUS_MESSAGES.get(status, fake.sentence(nb_words=6))}
    if with_eta:
        eta = datetime.now(UTC) + timedelta(minutes=random.randint(10, 45))
        payload["estimated_delivery"] = eta.isoformat()
    return payload


# ---------- Courier ----------


def courier_start(target: dict, spread_km: float = 3.0) -> dict:
    """A point up to ``spread_km`` away from ``target``."""
    bearing = random.uniform(0, 2 * math.pi)
    distance = random.uniform(0.5, spread_km) / 111.0
    return {
        "lat": max(-90.0, min(90.0, target["lat"] + distance * math.cos(bearing))),
        "lng": max(-180.0, min(180.0, target["lng"] + distance * math.sin(bearing))),
    }


def courier_ping_data(driver_id: str, position: dict, target: dict, step: float = 0.2) -> dict:
    """Move ``step`` of the way from ``position`` toward ``target`` and report it."""
    lat = position["lat"] + (target["lat"] - position["lat"]) * step
    lng = position["lng"] + (target["lng"] - position["lng"]) * step
    heading = (math.degrees(math.atan2(target["lng"] - lng, target["lat"] - lat)) + 360) % 360
    return {
        "driver_id": driver_id,
        "lat": round(lat, 6),
        "lng": round(lng, 6),
        "heading": round(heading, 1),
        "speed": round(random.uniform(8.0, 45.0), 1),
    }


# ---------- Chat ----------


def unique_room_id() -> str:
    return f"room-lt-{uuid.uuid4().hex[:8]}"


def chat_message_data(sender_id: str, sender_type: str = "customer", order_id: str | None = None) -> dict:
    """Generate SendMessageRequest payload."""
    return {
        "sender_id": sender_id,
        "content": fake.sentence(nb_words=random.randint(3, 12)),
        "sender_type": sender_type,
        "sender_name": fake.first_name(),
        "order_id": order_id,
    }
