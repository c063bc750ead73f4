"""
Anomaly Detection Service - threshold heuristics over consecutive location fixes.

Runs on every location update. Each detector builds a RiskFactors set, scores
it with calculate_anomaly_score (a capped weighted sum of thresholded inputs)
and decides detection with its own rule:

- sudden_drop_off: >50 km in <30 min, >30 km in <10 min, or >200 km/h
- prolonged_inactivity: >30 min since the previous fix
- route_deviation: >2 km from the nearest planned waypoint
- silent_distress: at least two distress factors at once
- risk_zone_entry: within 1 km of a danger zone centre

Detected anomalies are stored, mirrored as anomaly SOS alerts and, for
high/critical severity, sent to authorities.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.models.anomaly import RiskFactors
from app.services.notification_service import get_notification_service
from app.services.route_service import get_route_service
from app.services.tourist_service import get_tourist_service
from app.utils.firestore_helpers import (
    where_filter,
    doc_to_dict,
    docs_to_list,
    parse_timestamp,
    sort_by_timestamp,
)
from app.utils.geo import fence_center, haversine_km, nearest_waypoint
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

# (threshold, points) bands, first match wins
DISTANCE_BANDS = [(50, 30), (20, 20), (10, 10), (5, 5)]
TIME_GAP_BANDS = [(60, 25), (30, 15), (15, 8), (5, 3)]
SPEED_BANDS = [(150, 15), (100, 10), (80, 5)]
BATTERY_BANDS = [(20, 10), (30, 5)]
RISK_ZONE_BANDS = [(100, 20), (500, 15), (1000, 10), (2000, 5)]
ROUTE_DEVIATION_BANDS = [(5000, 15), (2000, 10), (1000, 5)]
INACTIVITY_BANDS = [(120, 20), (60, 15), (30, 10), (15, 5)]

INACTIVITY_THRESHOLD_MINUTES = 30
ROUTE_DEVIATION_THRESHOLD_KM = 2
RISK_ZONE_RADIUS_KM = 1
LOW_BATTERY = 20
POOR_NETWORKS = ("none", "2g")
UNUSUAL_SPEED_KMH = 150
NO_RISK_ZONE_METERS = 10000

RECOMMENDATIONS = {
    "sudden_drop_off": [
        "Verify tourist safety and location accuracy",
        "Contact tourist if possible",
        "Check for transportation mode changes",
        "Monitor for additional anomalies",
    ],
    "prolonged_inactivity": [
        "Attempt to contact tourist",
        "Check emergency contacts",
        "Monitor battery level and network connectivity",
        "Consider sending wellness check",
    ],
    "route_deviation": [
        "Verify if route change was intentional",
        "Check for transportation issues",
        "Update route if necessary",
        "Monitor for safety concerns in new area",
    ],
    "silent_distress": [
        "Immediate contact attempt required",
        "Consider emergency response activation",
        "Monitor vital signs if wearable data available",
        "Alert emergency contacts immediately",
    ],
    "risk_zone_entry": [
        "Monitor tourist closely in risk zone",
        "Ensure emergency contacts are updated",
        "Consider providing additional safety guidance",
        "Track exit from risk zone",
    ],
}


def _above(value: float, bands) -> int:
    for threshold, points in bands:
        if value > threshold:
            return points
    return 0


def _below(value: float, bands) -> int:
    for threshold, points in bands:
        if value < threshold:
            return points
    return 0


def calculate_anomaly_score(factors: RiskFactors) -> int:
    score = 0
    score += _above(factors.distance_km, DISTANCE_BANDS)
    score += _above(factors.time_gap_minutes, TIME_GAP_BANDS)
    score += _above(factors.speed_kmh, SPEED_BANDS)
    score += _below(factors.battery_level, BATTERY_BANDS)

    network = (factors.network_type or "").lower()
    if network in POOR_NETWORKS:
        score += 10
    elif network == "3g":
        score += 5

    score += _below(factors.risk_zone_proximity, RISK_ZONE_BANDS)
    score += _above(factors.route_deviation_meters, ROUTE_DEVIATION_BANDS)
    score += _above(factors.inactivity_minutes, INACTIVITY_BANDS)
    return min(100, score)


def get_severity_level(score: int) -> str:
    if score >= 80:
        return "critical"
    if score >= 60:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


def _not_detected(anomaly_type: str) -> Dict:
    return {
        "detected": False,
        "anomaly_type": anomaly_type,
        "severity_score": 0,
        "severity_level": "low",
        "details": {},
        "recommendations": [],
    }


def _result(anomaly_type: str, detected: bool, factors: RiskFactors, details: Dict) -> Dict:
    score = calculate_anomaly_score(factors)
    return {
        "detected": detected,
        "anomaly_type": anomaly_type,
        "severity_score": score,
        "severity_level": get_severity_level(score),
        "details": details,
        "recommendations": list(RECOMMENDATIONS[anomaly_type]),
    }


def _device_factors(location: Dict) -> Dict:
    """Battery and network readings of a fix, or the neutral defaults."""
    battery = location.get("battery_level")
    return {
        "battery_level": battery if battery is not None else 100,
        "network_type": location.get("network_type") or "unknown",
    }


def _minutes_between(later: Dict, earlier: Dict) -> float:
    later_ts = parse_timestamp(later.get("timestamp"))
    earlier_ts = parse_timestamp(earlier.get("timestamp"))
    if later_ts is None or earlier_ts is None:
        return 0.0
    return (later_ts - earlier_ts).total_seconds() / 60


def _point(location: Dict) -> Dict:
    return {"lat": location["latitude"], "lng": location["longitude"]}


def detect_sudden_drop_off(current: Dict, previous: Optional[Dict]) -> Dict:
    if not previous:
        return _not_detected("sudden_drop_off")

    distance = haversine_km(previous["latitude"], previous["longitude"], current["latitude"], current["longitude"])
    time_gap = _minutes_between(current, previous)
    speed = (distance / time_gap) * 60 if time_gap > 0 else 0

    factors = RiskFactors(
        distance_km=distance,
        time_gap_minutes=time_gap,
        speed_kmh=speed,
        inactivity_minutes=time_gap,
        **_device_factors(current),
    )
    detected = (distance > 50 and time_gap < 30) or (distance > 30 and time_gap < 10) or speed > 200
    return _result("sudden_drop_off", detected, factors, {
        "distance_km": distance,
        "time_gap_minutes": time_gap,
        "speed_kmh": speed,
        "previous_location": _point(previous),
        "current_location": _point(current),
    })


def detect_prolonged_inactivity(current: Dict, last_activity: Optional[Dict]) -> Dict:
    if not last_activity:
        return _not_detected("prolonged_inactivity")

    inactivity = _minutes_between(current, last_activity)
    device = _device_factors(current)
    factors = RiskFactors(time_gap_minutes=inactivity, inactivity_minutes=inactivity, **device)
    return _result("prolonged_inactivity", inactivity > INACTIVITY_THRESHOLD_MINUTES, factors, {
        "inactivity_minutes": inactivity,
        "last_activity": last_activity.get("timestamp"),
        "current_time": current.get("timestamp"),
        "battery_level": device["battery_level"],
    })


def detect_route_deviation(current: Dict, route: Optional[Dict]) -> Dict:
    waypoints = (route or {}).get("planned_waypoints") or []
    if not waypoints:
        return _not_detected("route_deviation")

    index, distance_km = nearest_waypoint(current["latitude"], current["longitude"], waypoints)
    factors = RiskFactors(route_deviation_meters=distance_km * 1000, **_device_factors(current))
    return _result("route_deviation", distance_km > ROUTE_DEVIATION_THRESHOLD_KM, factors, {
        "deviation_meters": distance_km * 1000,
        "nearest_waypoint": waypoints[index],
        "planned_waypoints": waypoints,
        "current_location": _point(current),
    })


def nearest_zone(current: Dict, risk_zones: List[Dict]):
    """(zone, distance_km) of the closest zone with a resolvable centre."""
    best, best_distance = None, None
    for zone in risk_zones:
        center = fence_center(zone)
        if center is None:
            continue
        distance = haversine_km(current["latitude"], current["longitude"], center[0], center[1])
        if best_distance is None or distance < best_distance:
            best, best_distance = zone, distance
    return best, best_distance


def detect_silent_distress(current: Dict, inactivity_result: Dict, risk_zones: List[Dict]) -> Dict:
    _, zone_distance_km = nearest_zone(current, risk_zones)
    proximity_m = zone_distance_km * 1000 if zone_distance_km is not None else NO_RISK_ZONE_METERS

    device = _device_factors(current)
    speed = current.get("speed_kmh") or 0
    distress_factors = {
        "inactivity": bool(inactivity_result.get("detected")),
        "low_battery": device["battery_level"] < LOW_BATTERY,
        "poor_network": str(device["network_type"]).lower() in POOR_NETWORKS,
        "in_risk_zone": zone_distance_km is not None and zone_distance_km < RISK_ZONE_RADIUS_KM,
        "unusual_speed": speed > UNUSUAL_SPEED_KMH,
    }
    distress_score = sum(1 for value in distress_factors.values() if value)

    inactivity = inactivity_result.get("details", {}).get("inactivity_minutes", 0)
    factors = RiskFactors(
        time_gap_minutes=inactivity,
        speed_kmh=speed,
        risk_zone_proximity=proximity_m,
        inactivity_minutes=inactivity,
        **device,
    )
    details = {
        "distress_factors": distress_factors,
        "distress_score": distress_score,
        "risk_zone_proximity_km": proximity_m / 1000,
    }
    details.update(inactivity_result.get("details", {}))
    return _result("silent_distress", distress_score >= 2, factors, details)


def detect_risk_zone_entry(current: Dict, risk_zones: List[Dict]) -> Dict:
    zone, distance_km = nearest_zone(current, risk_zones)
    if zone is None or distance_km >= RISK_ZONE_RADIUS_KM:
        return _not_detected("risk_zone_entry")

    factors = RiskFactors(risk_zone_proximity=0, **_device_factors(current))
    return _result("risk_zone_entry", True, factors, {
        "risk_zone": {
            "id": zone.get("id"),
            "name": zone.get("name"),
            "risk_level": zone.get("risk_level") or zone.get("type") or "unknown",
            "description": zone.get("description") or zone.get("risk_factors") or "Risk zone detected",
        },
        "entry_location": _point(current),
    })


class AnomalyDetectionService:
    """
    Service that runs the detectors for a fix and records what they find.
    """

    def __init__(self):
        self.db = get_db()

    def _previous_location(self, tourist_id: str, current: Dict) -> Optional[Dict]:
        query = where_filter(self.db.collection("tourist_locations"), "tourist_id", "==", tourist_id)
        current_ts = parse_timestamp(current.get("timestamp"))
        earlier = [
            loc for loc in docs_to_list(query.stream())
            if loc.get("id") != current.get("id")
            and (current_ts is None or (parse_timestamp(loc.get("timestamp")) or current_ts) < current_ts)
        ]
        earlier = sort_by_timestamp(earlier, "timestamp")
        return earlier[0] if earlier else None

    def _danger_zones(self) -> List[Dict]:
        # Imported here: the geo service calls back into this module.
        from app.services.geo_service import get_geo_service

        return [f for f in get_geo_service().get_geofences() if f.get("type") == "danger"]

    def detect_anomalies(self, tourist_id: str, current: Dict, previous: Optional[Dict] = None) -> List[Dict]:
        """
        Run every detector for a stored fix. Never raises.

        Args:
            tourist_id: Tourist the fix belongs to
            current: The fix (latitude, longitude, timestamp, device readings)
            previous: The tourist's fix before this one, looked up when omitted

        Returns:
            The detected anomalies, each with its stored "id" when persisted
        """
        anomalies: List[Dict] = []
        try:
            if previous is None:
                previous = self._previous_location(tourist_id, current)

            route = get_route_service().get_active_route(tourist_id)
            risk_zones = self._danger_zones()

            inactivity = detect_prolonged_inactivity(current, previous)
            results = [
                detect_sudden_drop_off(current, previous),
                inactivity,
                detect_route_deviation(current, route),
                detect_silent_distress(current, inactivity, risk_zones),
                detect_risk_zone_entry(current, risk_zones),
            ]
            anomalies = [r for r in results if r["detected"]]
        except Exception as e:
            logger.error(f"Anomaly detection failed for {tourist_id}: {str(e)}", exc_info=True)
            return []

        for anomaly in anomalies:
            self._store_anomaly(tourist_id, anomaly, current)

        if anomalies:
            logger.warning(
                f"Anomalies for tourist {tourist_id}: "
                f"{[(a['anomaly_type'], a['severity_level']) for a in anomalies]}"
            )
        return anomalies

    def _store_anomaly(self, tourist_id: str, anomaly: Dict, current: Dict) -> None:
        location = _point(current)
        try:
            ref = self.db.collection("anomalies").document()
            ref.set({
                "tourist_id": tourist_id,
                "anomaly_type": anomaly["anomaly_type"],
                "severity_score": anomaly["severity_score"],
                "severity_level": anomaly["severity_level"],
                "location_lat": location["lat"],
                "location_lng": location["lng"],
                "details": anomaly["details"],
                "recommendations": anomaly["recommendations"],
                "status": "active",
                "created_at": firestore.SERVER_TIMESTAMP,
            })
            anomaly["id"] = ref.id

            get_tourist_service().create_anomaly_sos_alert(
                tourist_id,
                anomaly["anomaly_type"],
                anomaly["severity_level"],
                location,
                anomaly["details"],
                anomaly["recommendations"],
            )

            notifications = get_notification_service()
            if anomaly["severity_level"] in ("high", "critical"):
                notifications.send_anomaly_notification(
                    anomaly["anomaly_type"],
                    anomaly["severity_level"],
                    tourist_id,
                    location,
                    anomaly["details"],
                    anomaly["recommendations"],
                )
            if anomaly["anomaly_type"] == "silent_distress" and anomaly["severity_level"] == "critical":
                notifications.send_emergency_notification(
                    tourist_id, location, "Silent Distress Pattern Detected", anomaly["details"]
                )
        except Exception as e:
            logger.error(f"Failed to store anomaly for {tourist_id}: {str(e)}", exc_info=True)

    def get_anomalies(self, tourist_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict]:
        try:
            query = self.db.collection("anomalies")
            if tourist_id:
                query = where_filter(query, "tourist_id", "==", tourist_id)
            anomalies = docs_to_list(query.stream())
        except Exception as e:
            logger.error(f"Failed to fetch anomalies: {str(e)}")
            return []
        if status:
            anomalies = [a for a in anomalies if a.get("status") == status]
        return sort_by_timestamp(anomalies, "created_at")

    def resolve_anomaly(self, anomaly_id: str) -> Dict:
        ref = self.db.collection("anomalies").document(anomaly_id)
        if not ref.get().exists:
            raise LookupError(f"Anomaly not found: {anomaly_id}")
        ref.update({"status": "resolved", "resolved_at": firestore.SERVER_TIMESTAMP})
        logger.info(f"Anomaly resolved: {anomaly_id}")
        return doc_to_dict(ref.get())


# Singleton instance
_anomaly_detection_service = None


def get_anomaly_detection_service() -> AnomalyDetectionService:
    """Get singleton anomaly detection service instance."""
    global _anomaly_detection_service
    if _anomaly_detection_service is None:
        _anomaly_detection_service = AnomalyDetectionService()
    return _anomaly_detection_service
