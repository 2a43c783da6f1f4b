"""Values derived from a tracked order: progress along the delivery and distances."""

import math

from delivery.backend.port import GeoPoint

STATUS_SEQUENCE = ("pending", "confirmed", "preparing", "ready", "on_way", "delivered")

EARTH_RADIUS_KM = 6371.0


def status_progress(status: str | None) -> float:
    """Percentage of the delivery sequence reached by ``status``.

    Statuses outside the sequence (``cancelled``, unknown values) give 0.
    """
    try:
        index = STATUS_SEQUENCE.index(status)
    except ValueError:
        index = -1
    return (index + 1) / len(STATUS_SEQUENCE) * 100


def haversine_km(origin: GeoPoint, destination: GeoPoint) -> float:
    d_lat = math.radians(destination.lat - origin.lat)
    d_lng = math.radians(destination.lng - origin.lng)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(origin.lat)) * math.cos(math.radians(destination.lat)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(distance_km: float) -> str:
    """``850m`` below one kilometre, ``2.4km`` from there on."""
    if distance_km < 1:
        return f"{round(distance_km * 1000)}m"
    return f"{distance_km:.1f}km"
