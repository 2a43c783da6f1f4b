"""Courier position — latest reported location of a driver on an order.

One record per (driver, order) pair; a new report replaces the previous one
whatever its timestamp.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Float, Identifier

from delivery.domain import delivery


def position_key(driver_id: str, order_id: str) -> str:
    return f"{driver_id}:{order_id}"


@delivery.aggregate
class CourierPosition:
    position_key = Identifier(identifier=True, required=True)
    driver_id = Identifier(required=True)
    order_id = Identifier(required=True)
    latitude = Float(required=True, min_value=-90.0, max_value=90.0)
    longitude = Float(required=True, min_value=-180.0, max_value=180.0)
    heading = Float(min_value=0.0, max_value=360.0)
    speed = Float(min_value=0.0)
    timestamp = DateTime(required=True)

    @classmethod
    def report(
        cls,
        driver_id: str,
        order_id: str,
        latitude: float,
        longitude: float,
        timestamp: datetime | None = None,
        heading: float | None = None,
        speed: float | None = None,
    ):
        return cls(
            position_key=position_key(driver_id, order_id),
            driver_id=driver_id,
            order_id=order_id,
            latitude=latitude,
            longitude=longitude,
            heading=heading,
            speed=speed,
            timestamp=timestamp or datetime.now(UTC),
        )

    def move_to(
        self,
        latitude: float,
        longitude: float,
        timestamp: datetime | None = None,
        heading: float | None = None,
        speed: float | None = None,
    ) -> None:
        self.latitude = latitude
        self.longitude = longitude
        self.heading = heading
        self.speed = speed
        self.timestamp = timestamp or datetime.now(UTC)
