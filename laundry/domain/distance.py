"""
Distance Calculator — Haversine distance and billable pickup/delivery fee.

Billable distance is always rounded UP to the whole kilometre, so a 0.1 km
trip bills as 1 km.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal

from laundry.core.errors import GeolocationError

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    @classmethod
    def parse(cls, lat: float | None, lng: float | None) -> "Coordinate | None":
        """Build a coordinate from optional parts. Missing parts mean "no GPS"."""
        if lat is None or lng is None:
            return None
        try:
            lat, lng = float(lat), float(lng)
        except (TypeError, ValueError):
            raise GeolocationError("Coordinates must be numeric.") from None
        if math.isnan(lat) or math.isnan(lng):
            raise GeolocationError("Coordinates must be numeric.")
        if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
            raise GeolocationError(f"Coordinates out of range: ({lat}, {lng}).")
        return cls(lat, lng)


@dataclass(frozen=True)
class DeliveryFee:
    distance: float
    rounded_distance: int
    fee: Decimal

    def as_dict(self) -> dict:
        return {"distance": self.distance, "rounded_distance": self.rounded_distance, "fee": self.fee}


NO_GPS = DeliveryFee(distance=0.0, rounded_distance=0, fee=Decimal("0"))


def haversine_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push `a` just past 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return abs(EARTH_RADIUS_KM * c)


def billable_km(distance_km: float) -> int:
    return math.ceil(distance_km)


def fee_for_distance(distance_km: float, rate_per_km: Decimal) -> DeliveryFee:
    rounded = billable_km(distance_km)
    return DeliveryFee(
        distance=round(distance_km, 2),
        rounded_distance=rounded,
        fee=rounded * Decimal(str(rate_per_km)),
    )


def compute_delivery_fee(
    pickup: Coordinate | None,
    origin: Coordinate,
    rate_per_km: Decimal,
) -> DeliveryFee:
    if pickup is None:
        return NO_GPS
    distance = haversine_distance_km(origin.lat, origin.lng, pickup.lat, pickup.lng)
    return fee_for_distance(distance, rate_per_km)


def delivery_fee_from_parts(
    lat: float | None,
    lng: float | None,
    origin: Coordinate,
    rate_per_km: Decimal,
) -> DeliveryFee:
    """Like compute_delivery_fee, but unusable coordinates fall back to no-GPS."""
    try:
        pickup = Coordinate.parse(lat, lng)
    except GeolocationError as exc:
        logger.warning("Ignoring pickup coordinates, falling back to manual address: %s", exc.message)
        return NO_GPS
    return compute_delivery_fee(pickup, origin, rate_per_km)


def format_distance(distance_km: float) -> str:
    if distance_km < 1:
        return f"{distance_km * 1000:.0f}m"
    return f"{distance_km:.1f}km"
