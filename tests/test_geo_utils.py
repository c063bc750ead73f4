from __future__ import annotations

import math

import pytest

from app.utils.geo import (
    fence_center,
    haversine_km,
    is_valid_fence_geometry,
    nearest_waypoint,
    point_in_fence,
    validate_coordinates,
    validate_polygon,
)

SQUARE = [
    {"lat": 0.0, "lng": 0.0},
    {"lat": 0.0, "lng": 1.0},
    {"lat": 1.0, "lng": 1.0},
    {"lat": 1.0, "lng": 0.0},
]

GEOJSON_SQUARE = {
    "type": "Polygon",
    "coordinates": [[[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0], [0.0, 0.0]]],
}


def test_haversine_known_distance() -> None:
    # Guwahati to Shillong, about 65 km in a straight line
    distance = haversine_km(26.1445, 91.7362, 25.5788, 91.8933)
    assert 60 < distance < 70
    assert haversine_km(10, 10, 10, 10) == 0


def test_one_degree_of_latitude() -> None:
    assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, rel=1e-3)


@pytest.mark.parametrize(
    "lat,lng,expected",
    [
        (0, 0, True),
        (90, 180, True),
        (-90, -180, True),
        (90.1, 0, False),
        (0, -180.5, False),
        ("1", 2, False),
        (None, 2, False),
        (True, 2, False),
    ],
)
def test_validate_coordinates(lat, lng, expected) -> None:
    assert validate_coordinates(lat, lng) is expected


def test_point_in_legacy_fence() -> None:
    assert point_in_fence(0.5, 0.5, SQUARE)
    assert not point_in_fence(1.5, 0.5, SQUARE)


def test_point_on_boundary_is_inside() -> None:
    assert point_in_fence(0.0, 0.5, SQUARE)
    assert point_in_fence(1.0, 1.0, SQUARE)


def test_point_in_geojson_fence_uses_lng_lat_order() -> None:
    assert point_in_fence(0.5, 0.25, GEOJSON_SQUARE)
    assert not point_in_fence(0.5, 1.25, GEOJSON_SQUARE)


def test_point_in_fence_never_raises_on_bad_geometry() -> None:
    assert not point_in_fence(0.5, 0.5, None)
    assert not point_in_fence(0.5, 0.5, [{"lat": 0, "lng": 0}])
    assert not point_in_fence(0.5, 0.5, [{"lat": "x"}, {}, {}])
    assert not point_in_fence(0.5, 0.5, {"type": "Point", "coordinates": [0, 0]})


def test_validate_polygon_requires_closed_ring() -> None:
    assert validate_polygon(GEOJSON_SQUARE)
    open_ring = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1]]]}
    assert not validate_polygon(open_ring)
    assert not validate_polygon({"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [0, 0]]]})
    assert not validate_polygon({"type": "LineString", "coordinates": []})
    assert not validate_polygon("not a polygon")


def test_fence_geometry_accepts_either_shape() -> None:
    assert is_valid_fence_geometry(SQUARE)
    assert is_valid_fence_geometry(GEOJSON_SQUARE)
    assert not is_valid_fence_geometry(SQUARE[:2])
    assert not is_valid_fence_geometry([{"lat": 100, "lng": 0}, {"lat": 0, "lng": 0}, {"lat": 1, "lng": 1}])


def test_fence_center_prefers_explicit_fields() -> None:
    assert fence_center({"latitude": 26.1, "longitude": 91.7, "coordinates": SQUARE}) == (26.1, 91.7)
    lat, lng = fence_center({"coordinates": SQUARE})
    assert lat == pytest.approx(0.5)
    assert lng == pytest.approx(0.5)
    assert fence_center({"coordinates": None}) is None


def test_nearest_waypoint() -> None:
    waypoints = [{"lat": 0, "lng": 0}, {"lat": 1, "lng": 1}, {"lat": 2, "lng": 2}]
    index, distance = nearest_waypoint(1.01, 1.0, waypoints)
    assert index == 1
    assert distance == pytest.approx(1.11, rel=0.05)

    index, distance = nearest_waypoint(0, 0, [])
    assert index is None
    assert math.isinf(distance)


def test_geometry_engine_errors_are_treated_as_invalid(monkeypatch) -> None:
    from shapely.errors import GEOSException

    from app.utils import geo

    def broken_shape(_):
        raise GEOSException("IllegalArgumentException: Points of LinearRing do not form a closed linestring")

    monkeypatch.setattr(geo, "shape", broken_shape)
    ring = {"type": "Polygon", "coordinates": [[[91.0, 26.0], [91.1, 26.0], [91.1, 26.1], [91.0, 26.0]]]}
    assert geo.to_polygon(ring) is None
    assert point_in_fence(26.05, 91.05, ring) is False
