"""
Distance calculator tests: haversine, round-up billing, no-GPS fallback.
"""
import math
from decimal import Decimal

import pytest

from laundry.core.errors import GeolocationError
from laundry.domain.distance import (
    NO_GPS,
    Coordinate,
    compute_delivery_fee,
    delivery_fee_from_parts,
    fee_for_distance,
    format_distance,
    haversine_distance_km,
)

ORIGIN = Coordinate(0.3385054639934989, 32.56840547410712)
RATE = Decimal("2000")
KM_PER_DEGREE_LAT = 2 * math.pi * 6371.0 / 360


def _north_of_origin(km: float) -> Coordinate:
    return Coordinate(ORIGIN.lat + km / KM_PER_DEGREE_LAT, ORIGIN.lng)


def test_haversine_is_zero_for_same_point():
    assert haversine_distance_km(ORIGIN.lat, ORIGIN.lng, ORIGIN.lat, ORIGIN.lng) == 0


def test_haversine_is_symmetric_and_non_negative():
    a, b = (0.31, 32.58), (0.35, 32.60)
    assert haversine_distance_km(*a, *b) == pytest.approx(haversine_distance_km(*b, *a))
    assert haversine_distance_km(*a, *b) > 0


def test_fee_is_monotonic_in_distance():
    distances = [0.0, 0.01, 0.42, 1.0, 1.0001, 2.5, 4.3, 4.99, 5.0, 12.7]
    fees = [fee_for_distance(d, RATE).fee for d in distances]
    assert fees == sorted(fees)


@pytest.mark.parametrize("distance", [0.0001, 0.1, 0.42, 0.999, 1.0])
def test_short_trips_bill_one_kilometre(distance):
    result = fee_for_distance(distance, RATE)
    assert result.rounded_distance == 1
    assert result.fee == RATE


def test_no_gps_never_raises():
    result = compute_delivery_fee(None, ORIGIN, RATE)
    assert result == NO_GPS
    assert result.as_dict() == {"distance": 0.0, "rounded_distance": 0, "fee": Decimal("0")}


def test_pickup_4_3_km_away_bills_five_km():
    result = compute_delivery_fee(_north_of_origin(4.3), ORIGIN, RATE)
    assert result.distance == pytest.approx(4.3, abs=0.01)
    assert result.rounded_distance == 5
    assert result.fee == Decimal("10000")


@pytest.mark.parametrize("lat,lng", [(91, 32.5), (0.3, 181), (float("nan"), 32.5), ("north", 32.5)])
def test_invalid_coordinates_raise_geolocation_error(lat, lng):
    with pytest.raises(GeolocationError):
        Coordinate.parse(lat, lng)


def test_missing_coordinate_part_means_no_gps():
    assert Coordinate.parse(None, 32.5) is None


def test_invalid_coordinates_fall_back_to_no_gps():
    assert delivery_fee_from_parts(123.0, 32.5, ORIGIN, RATE) == NO_GPS


def test_format_distance():
    assert format_distance(0.42) == "420m"
    assert format_distance(4.3) == "4.3km"


@pytest.mark.parametrize("lat", range(-89, 90, 7))
@pytest.mark.parametrize("lng", [-179, -120, -45, 0, 1, 60, 179])
def test_antipodal_points_are_half_the_circumference(lat, lng):
    opposite_lng = lng + 180 if lng <= 0 else lng - 180
    distance = haversine_distance_km(lat, lng, -lat, opposite_lng)
    assert distance == pytest.approx(math.pi * 6371.0, rel=1e-6)


def test_known_antipodal_pair():
    assert haversine_distance_km(-82, -179, 82, 1) == pytest.approx(math.pi * 6371.0)
