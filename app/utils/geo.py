"""
Geometry helpers: distances, coordinate validation and geofence containment.

Geofence coordinates arrive in two shapes:
- legacy: a list of {"lat": .., "lng": ..} vertices (ring closed implicitly)
- GeoJSON: {"type": "Polygon", "coordinates": [[[lng, lat], ...]]}
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from shapely.geometry import Point, Polygon, shape
from shapely.errors import GEOSException

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    return haversine_km(lat1, lng1, lat2, lng2) * 1000


def validate_coordinates(latitude: Any, longitude: Any) -> bool:
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        return False
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        return False
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


def validate_fence_coordinates(coordinates: Any) -> bool:
    """Legacy vertex list: at least 3 vertices, each with valid lat/lng."""
    if not isinstance(coordinates, list) or len(coordinates) < 3:
        return False
    for coord in coordinates:
        if not isinstance(coord, dict):
            return False
        if not validate_coordinates(coord.get("lat"), coord.get("lng")):
            return False
    return True


def validate_polygon(geojson: Any) -> bool:
    """GeoJSON Polygon with a closed outer ring of at least 4 positions."""
    try:
        if not isinstance(geojson, dict) or geojson.get("type") != "Polygon":
            return False

        rings = geojson.get("coordinates")
        if not isinstance(rings, list) or len(rings) == 0:
            return False

        outer_ring = rings[0]
        if not isinstance(outer_ring, list) or len(outer_ring) < 4:
            return False

        first, last = outer_ring[0], outer_ring[-1]
        return first[0] == last[0] and first[1] == last[1]
    except (TypeError, IndexError, KeyError):
        return False


def is_valid_fence_geometry(coordinates: Any) -> bool:
    return validate_fence_coordinates(coordinates) or validate_polygon(coordinates)


def to_polygon(coordinates: Any) -> Optional[Polygon]:
    """
    Build a shapely polygon in (lng, lat) axis order from either fence shape.
    Returns None for anything that is not a usable polygon.
    """
    try:
        if isinstance(coordinates, list):
            if len(coordinates) < 3:
                return None
            ring = [(float(c["lng"]), float(c["lat"])) for c in coordinates]
            polygon = Polygon(ring)
        elif isinstance(coordinates, dict) and coordinates.get("type") == "Polygon":
            polygon = shape(coordinates)
        else:
            return None
    except (TypeError, KeyError, ValueError, GEOSException) as e:
        logger.debug(f"Unusable fence geometry: {e}")
        return None

    if polygon.is_empty or polygon.area == 0:
        return None
    return polygon


def point_in_fence(latitude: float, longitude: float, coordinates: Any) -> bool:
    """Boundary-inclusive containment test. Never raises."""
    polygon = to_polygon(coordinates)
    if polygon is None:
        return False
    try:
        return polygon.covers(Point(float(longitude), float(latitude)))
    except (TypeError, ValueError, GEOSException):
        return False


def fence_center(fence: Dict) -> Optional[Tuple[float, float]]:
    """
    (lat, lng) centre of a zone record. Explicit centre fields win, otherwise
    the polygon centroid is used.
    """
    for lat_key, lng_key in (
        ("latitude", "longitude"),
        ("center_lat", "center_lng"),
        ("center_latitude", "center_longitude"),
    ):
        lat, lng = fence.get(lat_key), fence.get(lng_key)
        if lat is not None and lng is not None:
            return float(lat), float(lng)

    polygon = to_polygon(fence.get("coordinates"))
    if polygon is None:
        return None
    centroid = polygon.centroid
    return centroid.y, centroid.x


def nearest_waypoint(latitude: float, longitude: float, waypoints: List[Dict]) -> Tuple[Optional[int], float]:
    """Index of the closest waypoint and its distance in km (inf when empty)."""
    best_index: Optional[int] = None
    best_distance = math.inf
    for index, waypoint in enumerate(waypoints):
        distance = haversine_km(latitude, longitude, waypoint["lat"], waypoint["lng"])
        if distance < best_distance:
            best_index, best_distance = index, distance
    return best_index, best_distance
