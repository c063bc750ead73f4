"""
Geo Service - tourist locations, geofences, risk areas and area safety scores.

Fences are read through a short-lived in-process cache (GEOFENCE_CACHE_SECONDS)
that every write invalidates. Reads that fail against the store fall back to a
small set of mock fences and risk areas around New Delhi so map views keep
working.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.core.settings import settings
from app.utils.firestore_helpers import (
    where_filter,
    doc_to_dict,
    docs_to_list,
    parse_timestamp,
    sort_by_timestamp,
    utcnow,
)
from app.utils.geo import (
    haversine_meters,
    is_valid_fence_geometry,
    point_in_fence,
    validate_coordinates,
    validate_polygon as validate_geojson_polygon,
)
from typing import Dict, List, Optional
import logging
import time

logger = logging.getLogger(__name__)

FENCE_TYPES = ("safe", "restricted", "danger", "tourist_zone", "risk_zone")
RISK_LEVEL_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}
RISK_LEVEL_PENALTY = {"critical": 30, "high": 20, "medium": 10, "low": 5}

SAFETY_RECOMMENDATIONS = [
    "Stay in well-lit areas",
    "Keep valuables secure",
    "Travel in groups when possible",
    "Avoid isolated areas after dark",
]

MOCK_GEOFENCES = [
    {
        "id": "mock-safe-1",
        "name": "Tourist Hub Area",
        "type": "safe",
        "description": "Main tourist area with high security",
        "coordinates": [
            {"lat": 28.6129, "lng": 77.2295},
            {"lat": 28.6139, "lng": 77.2305},
            {"lat": 28.6149, "lng": 77.2295},
            {"lat": 28.6139, "lng": 77.2285},
        ],
        "active": True,
    },
    {
        "id": "mock-restricted-1",
        "name": "Construction Zone",
        "type": "restricted",
        "description": "Temporary construction area - avoid during work hours",
        "coordinates": [
            {"lat": 28.61, "lng": 77.22},
            {"lat": 28.611, "lng": 77.221},
            {"lat": 28.612, "lng": 77.22},
            {"lat": 28.611, "lng": 77.219},
        ],
        "active": True,
    },
    {
        "id": "mock-danger-1",
        "name": "High Crime Area",
        "type": "danger",
        "description": "Area with elevated security risks - avoid especially at night",
        "coordinates": [
            {"lat": 28.6, "lng": 77.21},
            {"lat": 28.601, "lng": 77.211},
            {"lat": 28.602, "lng": 77.21},
            {"lat": 28.601, "lng": 77.209},
        ],
        "active": True,
    },
]

MOCK_RISK_AREAS = [
    {
        "id": "risk-1",
        "name": "Crowded Market Area",
        "center": {"latitude": 28.6139, "longitude": 77.2295},
        "radius": 500,
        "risk_level": "medium",
        "description": "High pickpocket activity reported",
        "active_incidents": 3,
    },
    {
        "id": "risk-2",
        "name": "Traffic Congestion Zone",
        "center": {"latitude": 28.61, "longitude": 77.22},
        "radius": 800,
        "risk_level": "high",
        "description": "Heavy traffic with frequent accidents",
        "active_incidents": 7,
    },
]


def _risk_area_from_record(record: Dict) -> Dict:
    return {
        "id": record["id"],
        "name": record.get("name", ""),
        "center": {
            "latitude": record.get("center_latitude"),
            "longitude": record.get("center_longitude"),
        },
        "radius": record.get("radius", 0),
        "risk_level": record.get("risk_level", "low"),
        "description": record.get("description", ""),
        "active_incidents": record.get("active_incidents") or 0,
    }


class GeoService:
    """
    Service for location tracking and geofencing.
    """

    def __init__(self):
        self.db = get_db()
        self._fence_cache: Optional[List[Dict]] = None
        self._fence_cache_at: float = 0.0

    def clear_cache(self) -> None:
        self._fence_cache = None
        self._fence_cache_at = 0.0

    def seed_demo_data(self) -> Dict[str, int]:
        """Write the mock fences and risk areas into an empty store."""
        created = {"geofences": 0, "risk_areas": 0}
        if not list(self.db.collection("geo_fences").limit(1).stream()):
            for fence in MOCK_GEOFENCES:
                self.create_geofence(fence)
                created["geofences"] += 1
        if not list(self.db.collection("risk_areas").limit(1).stream()):
            for area in MOCK_RISK_AREAS:
                self.create_risk_area(area)
                created["risk_areas"] += 1
        return created

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def update_tourist_location(self, update: Dict) -> Dict:
        """
        Store a location fix and run the geofence and anomaly checks for it.

        Args:
            update: tourist_id, latitude, longitude and optional timestamp,
                accuracy, battery_level, network_type, speed_kmh

        Returns:
            {"location", "geofence_alerts", "anomalies"}

        Raises:
            ValueError: missing tourist id or out-of-range coordinates
        """
        tourist_id = (update.get("tourist_id") or "").strip()
        latitude, longitude = update.get("latitude"), update.get("longitude")

        if not validate_coordinates(latitude, longitude):
            raise ValueError("Invalid coordinates provided")
        if not tourist_id:
            raise ValueError("Tourist ID is required")

        previous = self.get_tourist_location(tourist_id)

        record = {
            "tourist_id": tourist_id,
            "latitude": latitude,
            "longitude": longitude,
            "timestamp": parse_timestamp(update.get("timestamp")) or utcnow(),
            "accuracy": update.get("accuracy"),
            "battery_level": update.get("battery_level"),
            "network_type": update.get("network_type"),
            "speed_kmh": update.get("speed_kmh"),
            "created_at": firestore.SERVER_TIMESTAMP,
        }
        ref = self.db.collection("tourist_locations").document()
        ref.set(record)
        location = doc_to_dict(ref.get())
        logger.info(f"Location stored for tourist {tourist_id}: {ref.id}")

        geofence_alerts: List[Dict] = []
        try:
            geofence_alerts = self.check_geofence_violations(location, previous)
        except Exception as e:
            logger.error(f"Geofence check failed for {tourist_id}: {str(e)}", exc_info=True)

        # Imported here: anomaly detection reads fences through this service.
        from app.services.anomaly_detection_service import get_anomaly_detection_service

        anomalies = get_anomaly_detection_service().detect_anomalies(tourist_id, location, previous=previous)

        return {"location": location, "geofence_alerts": geofence_alerts, "anomalies": anomalies}

    def get_tourist_location(self, tourist_id: str) -> Optional[Dict]:
        if not tourist_id or not tourist_id.strip():
            raise ValueError("Tourist ID is required")
        query = where_filter(self.db.collection("tourist_locations"), "tourist_id", "==", tourist_id)
        locations = sort_by_timestamp(docs_to_list(query.stream()), "timestamp")
        return locations[0] if locations else None

    def get_all_tourist_locations(self) -> List[Dict]:
        locations = docs_to_list(self.db.collection("tourist_locations").stream())
        return sort_by_timestamp(locations, "timestamp")

    # ------------------------------------------------------------------
    # Geofences
    # ------------------------------------------------------------------

    def create_geofence(self, fence: Dict) -> Dict:
        name = (fence.get("name") or "").strip()
        if not name:
            raise ValueError("GeoFence name is required")
        fence_type = fence.get("type")
        if fence_type not in FENCE_TYPES:
            raise ValueError(f"Invalid geofence type: {fence_type}")
        if not is_valid_fence_geometry(fence.get("coordinates")):
            raise ValueError("Invalid coordinates for geofence")

        record = {
            "name": name,
            "type": fence_type,
            "description": fence.get("description") or "",
            "coordinates": fence["coordinates"],
            "risk_level": fence.get("risk_level"),
            "active": True,
            "created_at": firestore.SERVER_TIMESTAMP,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }
        for key in ("risk_factors", "recommendations", "created_by"):
            if fence.get(key) is not None:
                record[key] = fence[key]

        ref = self.db.collection("geo_fences").document()
        ref.set(record)
        self.clear_cache()
        logger.info(f"Geofence created: {ref.id} ({fence_type})")
        return doc_to_dict(ref.get())

    def update_geofence(self, fence_id: str, updates: Dict) -> Dict:
        if not fence_id or not fence_id.strip():
            raise ValueError("GeoFence ID is required")

        ref = self.db.collection("geo_fences").document(fence_id)
        if not ref.get().exists:
            raise LookupError(f"Geofence not found: {fence_id}")

        update_data: Dict = {}
        if (updates.get("name") or "").strip():
            update_data["name"] = updates["name"].strip()
        if updates.get("type"):
            if updates["type"] not in FENCE_TYPES:
                raise ValueError(f"Invalid geofence type: {updates['type']}")
            update_data["type"] = updates["type"]
        if updates.get("description") is not None:
            update_data["description"] = updates["description"]
        if updates.get("risk_level") is not None:
            update_data["risk_level"] = updates["risk_level"]
        if updates.get("coordinates") is not None:
            if is_valid_fence_geometry(updates["coordinates"]):
                update_data["coordinates"] = updates["coordinates"]
            else:
                logger.warning(f"Ignoring invalid coordinates in update for geofence {fence_id}")
        update_data["updated_at"] = firestore.SERVER_TIMESTAMP

        ref.update(update_data)
        self.clear_cache()
        return doc_to_dict(ref.get())

    def delete_geofence(self, fence_id: str) -> None:
        """Soft delete: the fence stays in the store with active=False."""
        if not fence_id or not fence_id.strip():
            raise ValueError("GeoFence ID is required")
        ref = self.db.collection("geo_fences").document(fence_id)
        if not ref.get().exists:
            raise LookupError(f"Geofence not found: {fence_id}")
        ref.update({"active": False, "updated_at": firestore.SERVER_TIMESTAMP})
        self.clear_cache()
        logger.info(f"Geofence deactivated: {fence_id}")

    def get_geofences(self) -> List[Dict]:
        now = time.monotonic()
        if self._fence_cache is not None and now - self._fence_cache_at < settings.GEOFENCE_CACHE_SECONDS:
            return [dict(f) for f in self._fence_cache]

        try:
            query = where_filter(self.db.collection("geo_fences"), "active", "==", True)
            fences = sort_by_timestamp(docs_to_list(query.stream()), "created_at")
        except Exception as e:
            logger.warning(f"Failed to get geofences, serving mock fences: {e}")
            return [dict(f) for f in MOCK_GEOFENCES]

        self._fence_cache = fences
        self._fence_cache_at = now
        return [dict(f) for f in fences]

    def get_geofence(self, fence_id: str) -> Dict:
        fence = doc_to_dict(self.db.collection("geo_fences").document(fence_id).get())
        if fence is None:
            raise LookupError(f"Geofence not found: {fence_id}")
        return fence

    def check_point_in_geofence(self, lat: float, lng: float, fence: Dict) -> bool:
        return point_in_fence(lat, lng, fence.get("coordinates"))

    def get_containing_geofences(self, lat: float, lng: float) -> List[Dict]:
        return [f for f in self.get_geofences() if self.check_point_in_geofence(lat, lng, f)]

    def get_escalation_type(self, fences: List[Dict], lat: float, lng: float) -> str:
        """The first containing fence decides: danger → ranger, anything else → police."""
        for fence in fences:
            if self.check_point_in_geofence(lat, lng, fence):
                return "ranger" if fence.get("type") == "danger" else "police"
        return "police"

    def validate_polygon(self, geojson) -> bool:
        return validate_geojson_polygon(geojson)

    # ------------------------------------------------------------------
    # Geofence alerts
    # ------------------------------------------------------------------

    def check_geofence_violations(self, location: Dict, previous: Optional[Dict] = None) -> List[Dict]:
        """
        Danger fences raise a violation whenever the fix is inside them.
        Restricted fences raise entry/exit on transitions against the previous fix.
        """
        alerts = []
        lat, lng = location["latitude"], location["longitude"]

        for fence in self.get_geofences():
            inside = self.check_point_in_geofence(lat, lng, fence)
            fence_type = fence.get("type")

            if fence_type == "danger" and inside:
                alerts.append(self._create_geofence_alert(location, fence, "violation"))
            elif fence_type == "restricted" and previous is not None:
                was_inside = self.check_point_in_geofence(previous["latitude"], previous["longitude"], fence)
                if inside and not was_inside:
                    alerts.append(self._create_geofence_alert(location, fence, "entry"))
                elif was_inside and not inside:
                    alerts.append(self._create_geofence_alert(location, fence, "exit"))

        return alerts

    def _create_geofence_alert(self, location: Dict, fence: Dict, alert_type: str) -> Dict:
        record = {
            "tourist_id": location["tourist_id"],
            "geofence_id": fence["id"],
            "alert_type": alert_type,
            "latitude": location["latitude"],
            "longitude": location["longitude"],
            "created_at": firestore.SERVER_TIMESTAMP,
        }
        ref = self.db.collection("geofence_alerts").document()
        ref.set(record)
        logger.warning(f"Geofence {alert_type}: tourist {location['tourist_id']} / {fence.get('name')}")
        return self._format_geofence_alert(doc_to_dict(ref.get()), fence.get("name"))

    @staticmethod
    def _format_geofence_alert(record: Dict, fence_name: Optional[str]) -> Dict:
        return {
            "id": record["id"],
            "tourist_id": record.get("tourist_id"),
            "geofence_id": record.get("geofence_id"),
            "geofence_name": fence_name or "Unknown",
            "alert_type": record.get("alert_type"),
            "location": {"latitude": record.get("latitude"), "longitude": record.get("longitude")},
            "timestamp": record.get("created_at"),
        }

    def get_geofence_alerts(self, tourist_id: Optional[str] = None) -> List[Dict]:
        query = self.db.collection("geofence_alerts")
        if tourist_id and tourist_id.strip():
            query = where_filter(query, "tourist_id", "==", tourist_id)
        records = sort_by_timestamp(docs_to_list(query.stream()), "created_at")

        names: Dict[str, Optional[str]] = {}
        alerts = []
        for record in records:
            fence_id = record.get("geofence_id")
            if fence_id not in names:
                fence = doc_to_dict(self.db.collection("geo_fences").document(fence_id).get()) if fence_id else None
                names[fence_id] = fence.get("name") if fence else None
            alerts.append(self._format_geofence_alert(record, names[fence_id]))
        return alerts

    # ------------------------------------------------------------------
    # Risk areas and safety score
    # ------------------------------------------------------------------

    def create_risk_area(self, area: Dict) -> Dict:
        if not (area.get("name") or "").strip():
            raise ValueError("Risk area name is required")
        center = area.get("center") or {}
        if not validate_coordinates(center.get("latitude"), center.get("longitude")):
            raise ValueError("Invalid risk area center")
        if area.get("risk_level") not in RISK_LEVEL_ORDER:
            raise ValueError(f"Invalid risk level: {area.get('risk_level')}")

        record = {
            "name": area["name"].strip(),
            "center_latitude": center["latitude"],
            "center_longitude": center["longitude"],
            "radius": float(area.get("radius") or 500),
            "risk_level": area["risk_level"],
            "risk_rank": RISK_LEVEL_ORDER[area["risk_level"]],
            "description": area.get("description") or "",
            "active_incidents": int(area.get("active_incidents") or 0),
            "created_at": firestore.SERVER_TIMESTAMP,
        }
        ref = self.db.collection("risk_areas").document()
        ref.set(record)
        logger.info(f"Risk area created: {ref.id}")
        return _risk_area_from_record(doc_to_dict(ref.get()))

    def get_risk_areas(self) -> List[Dict]:
        try:
            records = docs_to_list(self.db.collection("risk_areas").stream())
        except Exception as e:
            logger.warning(f"Failed to get risk areas, serving mock areas: {e}")
            return [dict(a) for a in MOCK_RISK_AREAS]

        areas = [_risk_area_from_record(r) for r in records]
        return sorted(areas, key=lambda a: RISK_LEVEL_ORDER.get(a["risk_level"], 0), reverse=True)

    def calculate_safety_score(self, latitude: float, longitude: float) -> Dict:
        """
        Rule-based area score in 0..100 (higher is safer).

        crime: -30 per containing danger fence, and per covering risk area
            3 points per active incident (at most 30)
        traffic: nearby risk areas (within twice their radius), by risk level
        crowding: -10 per covering risk area
        infrastructure: baseline
        """
        if not validate_coordinates(latitude, longitude):
            raise ValueError("Invalid coordinates provided")

        crime, traffic, crowding, infrastructure = 90, 90, 85, 85
        recommendations = list(SAFETY_RECOMMENDATIONS)

        for fence in self.get_containing_geofences(latitude, longitude):
            if fence.get("type") == "danger":
                crime -= 30
                recommendations.insert(0, f"Leave {fence.get('name', 'this area')} as soon as possible")
            elif fence.get("type") == "restricted":
                infrastructure -= 10
                recommendations.insert(0, f"{fence.get('name', 'This area')} is restricted")

        for area in self.get_risk_areas():
            center = area.get("center") or {}
            if center.get("latitude") is None or center.get("longitude") is None:
                continue
            distance = haversine_meters(latitude, longitude, center["latitude"], center["longitude"])
            radius = area.get("radius") or 0
            if distance <= radius:
                crime -= min(area.get("active_incidents", 0) * 3, 30)
                crowding -= 10
                if area.get("description"):
                    recommendations.append(f"{area['name']}: {area['description']}")
            if distance <= radius * 2:
                traffic -= RISK_LEVEL_PENALTY.get(area.get("risk_level"), 0)

        factors = {
            "crime": max(0, min(100, crime)),
            "traffic": max(0, min(100, traffic)),
            "crowding": max(0, min(100, crowding)),
            "infrastructure": max(0, min(100, infrastructure)),
        }
        score = round(sum(factors.values()) / len(factors))
        return {"score": score, "factors": factors, "recommendations": recommendations}


# Singleton instance
_geo_service = None


def get_geo_service() -> GeoService:
    """Get singleton geo service instance."""
    global _geo_service
    if _geo_service is None:
        _geo_service = GeoService()
    return _geo_service
