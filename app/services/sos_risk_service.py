"""
SOS Risk Service - risk-aware SOS prioritisation.

Rule-based scoring over a tourist's alert history plus device context
(battery, network). Priorities and escalation targets use upper-case levels
(LOW/MEDIUM/HIGH/CRITICAL) to keep them distinct from anomaly severities.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.services.geo_service import get_geo_service
from app.services.notification_service import get_notification_service
from app.services.sos_service import validate_sos_location
from app.utils.firestore_helpers import where_filter, docs_to_list, parse_timestamp, utcnow
from app.utils.geo import haversine_km
from app.utils.security import generate_integrity_hash
from app.core.settings import settings
from datetime import timedelta
from typing import Dict, List
from zoneinfo import ZoneInfo
import logging

logger = logging.getLogger(__name__)

RISK_NEGATIVE_KEYWORDS = [
    "unsafe",
    "robbery",
    "bad lighting",
    "isolated",
    "unsafe at night",
    "dangerous",
    "avoid",
    "crime",
    "theft",
    "mugging",
    "scam",
    "dark",
    "empty",
    "sketchy",
    "rough area",
    "not safe",
]

# Alerts and risk areas within this distance count as "nearby"
LOCATION_RISK_RADIUS_KM = 1.0


def time_of_day(hour: int) -> str:
    if hour >= 22 or hour <= 5:
        return "night"
    if 6 <= hour <= 11:
        return "morning"
    if 12 <= hour <= 17:
        return "afternoon"
    return "evening"


def risk_level_for(score: float) -> str:
    if score >= 80:
        return "CRITICAL"
    if score >= 60:
        return "HIGH"
    if score >= 35:
        return "MEDIUM"
    return "LOW"


def priority_for(score: float) -> str:
    if score >= 85:
        return "CRITICAL"
    if score >= 65:
        return "HIGH"
    if score >= 35:
        return "MEDIUM"
    return "LOW"


def find_keywords(text: str) -> List[str]:
    lowered = (text or "").lower()
    return [keyword for keyword in RISK_NEGATIVE_KEYWORDS if keyword in lowered]


class SOSRiskService:
    """
    Risk profiles, enhanced SOS creation and location risk checks.
    """

    def __init__(self):
        self.db = get_db()

    def _alerts_for(self, tourist_id: str) -> List[Dict]:
        query = where_filter(self.db.collection("sos_alerts"), "tourist_id", "==", tourist_id)
        return docs_to_list(query.stream())

    def get_sos_analytics(self, tourist_id: str, now=None) -> Dict:
        now = parse_timestamp(now) or utcnow()
        buckets = {"night": 0, "morning": 0, "afternoon": 0, "evening": 0}
        local_tz = ZoneInfo(settings.TIMEZONE)
        analytics = {
            "total_alerts": 0,
            "alerts_last_24h": 0,
            "alerts_last_7d": 0,
            "time_of_day": buckets,
            "common_time_patterns": [],
        }
        try:
            alerts = self._alerts_for(tourist_id)
        except Exception as e:
            logger.error(f"Failed to get SOS analytics: {str(e)}")
            return analytics

        for alert in alerts:
            created_at = parse_timestamp(alert.get("created_at"))
            if created_at is None:
                continue
            if created_at >= now - timedelta(hours=24):
                analytics["alerts_last_24h"] += 1
            if created_at >= now - timedelta(days=7):
                analytics["alerts_last_7d"] += 1
            buckets[time_of_day(created_at.astimezone(local_tz).hour)] += 1

        analytics["total_alerts"] = len(alerts)
        analytics["common_time_patterns"] = [name for name, count in buckets.items() if count]
        return analytics

    def analyze_risk_profile(self, tourist_id: str, now=None) -> Dict:
        analytics = self.get_sos_analytics(tourist_id, now=now)
        factors = []

        if analytics["alerts_last_24h"] >= 3:
            factors.append({
                "type": "frequency",
                "score": 85,
                "description": "Multiple alerts in 24h (high stress indicator)",
                "weight": 1.5,
            })
        elif analytics["alerts_last_7d"] >= 5:
            factors.append({
                "type": "frequency",
                "score": 65,
                "description": "Frequent alerts this week",
                "weight": 1.2,
            })

        if analytics["time_of_day"]["night"] > 2:
            factors.append({
                "type": "time_pattern",
                "score": 70,
                "description": "Multiple night-time alerts",
                "weight": 1.3,
            })

        base_score = min(analytics["total_alerts"] * 5, 40)
        factor_score = (
            sum(f["score"] * f["weight"] for f in factors) / len(factors) if factors else 0
        )
        final_score = min(base_score + factor_score, 100)

        return {
            "tourist_id": tourist_id,
            "risk_level": risk_level_for(final_score),
            "risk_score": round(final_score),
            "last_updated": utcnow(),
            "factors": factors,
        }

    def create_enhanced_sos(self, request: Dict) -> Dict:
        """
        Create an SOS alert prioritised by the tourist's risk profile and device state.

        Returns:
            {"success", "sos_id", "priority", "risk_score", "suggested_escalation",
            "risk_profile"} or {"success": False, "error"}
        """
        try:
            tourist_id = (request.get("tourist_id") or "").strip()
            if not tourist_id:
                raise ValueError("Tourist ID is required")
            location = request.get("location") or {}
            validate_sos_location(location)

            profile = self.analyze_risk_profile(tourist_id)
            risk_score = profile["risk_score"]

            if request.get("battery_level", 100) < 20:
                risk_score += 15
            if request.get("network_strength", 100) < 30:
                risk_score += 10
            if any(f["type"] == "frequency" and f["score"] > 80 for f in profile["factors"]):
                risk_score += 20

            priority = priority_for(risk_score)
            alert_type = request.get("type") or "general"
            if alert_type == "medical":
                escalation = "medical"
            elif priority == "CRITICAL":
                escalation = "local_police"
            else:
                escalation = "ranger"

            record = {
                "tourist_id": tourist_id,
                "alert_type": alert_type,
                "status": "active",
                "latitude": location["latitude"],
                "longitude": location["longitude"],
                "address": location.get("address") or None,
                "message": request.get("message") or "",
                "battery_level": request.get("battery_level", 100),
                "network_strength": request.get("network_strength", 100),
                "risk_score": round(risk_score),
                "priority": priority,
                "suggested_escalation": escalation,
                "device_info": request.get("device_info") or {},
            }
            record["blockchain_hash"] = generate_integrity_hash({**record, "issued_at": utcnow().isoformat()})
            record["created_at"] = firestore.SERVER_TIMESTAMP
            record["updated_at"] = firestore.SERVER_TIMESTAMP

            ref = self.db.collection("sos_alerts").document()
            ref.set(record)
            logger.warning(f"Enhanced SOS {ref.id}: priority={priority} escalation={escalation}")

            self._store_risk_profile(profile)
            self._notify(ref.id, record, priority)

            return {
                "success": True,
                "sos_id": ref.id,
                "priority": priority,
                "risk_score": round(risk_score),
                "suggested_escalation": escalation,
                "risk_profile": profile,
            }
        except Exception as e:
            logger.error(f"Enhanced SOS creation failed: {str(e)}", exc_info=True)
            return {"success": False, "error": str(e)}

    def _store_risk_profile(self, profile: Dict) -> None:
        try:
            self.db.collection("risk_profiles").document(profile["tourist_id"]).set({
                **profile,
                "last_updated": firestore.SERVER_TIMESTAMP,
            })
        except Exception as e:
            logger.error(f"Failed to store risk profile: {str(e)}")

    def _notify(self, sos_id: str, record: Dict, priority: str) -> None:
        notifications = get_notification_service()
        location = {"lat": record["latitude"], "lng": record["longitude"]}
        try:
            if priority in ("CRITICAL", "HIGH"):
                notifications.send_emergency_notification(
                    record["tourist_id"],
                    location,
                    f"{priority} priority SOS ({record['alert_type']})",
                    {"sos_id": sos_id, "risk_score": record["risk_score"]},
                )
            else:
                notifications.notify_authorities({
                    "id": sos_id,
                    "type": record["alert_type"],
                    "tourist_id": record["tourist_id"],
                    "message": record["message"],
                    "location": {"latitude": record["latitude"], "longitude": record["longitude"]},
                })
        except Exception as e:
            logger.error(f"Failed to send SOS notifications for {sos_id}: {str(e)}")

    def check_location_risk(self, latitude: float, longitude: float) -> Dict:
        """
        Keyword scan over descriptions of nearby alerts and risk areas.

        HIGH: 3+ keyword hits or inside a danger fence; MEDIUM: 1+ hits; else LOW.
        """
        warnings: List[str] = []
        hits: List[str] = []
        in_danger = False
        try:
            texts = []
            for alert in docs_to_list(self.db.collection("sos_alerts").stream()):
                if alert.get("latitude") is None or alert.get("longitude") is None:
                    continue
                if haversine_km(latitude, longitude, alert["latitude"], alert["longitude"]) <= LOCATION_RISK_RADIUS_KM:
                    texts.append(alert.get("message") or "")

            geo = get_geo_service()
            for area in geo.get_risk_areas():
                center = area.get("center") or {}
                if center.get("latitude") is None:
                    continue
                if haversine_km(latitude, longitude, center["latitude"], center["longitude"]) <= LOCATION_RISK_RADIUS_KM:
                    texts.append(area.get("description") or "")

            for text in texts:
                found = find_keywords(text)
                if found:
                    hits.extend(found)
                    warnings.append(f"Reports mention: {', '.join(found)}")

            for fence in geo.get_containing_geofences(latitude, longitude):
                if fence.get("type") == "danger":
                    in_danger = True
                    warnings.append(f"Inside danger zone: {fence.get('name')}")
        except Exception as e:
            logger.error(f"Location risk check failed: {str(e)}")
            return {"is_risky": False, "risk_level": "LOW", "warnings": [], "source": "error"}

        if len(hits) >= 3 or in_danger:
            risk_level = "HIGH"
        elif hits:
            risk_level = "MEDIUM"
        else:
            risk_level = "LOW"

        return {
            "is_risky": risk_level != "LOW",
            "risk_level": risk_level,
            "warnings": warnings,
            "source": "alerts_and_risk_areas",
        }


# Singleton instance
_sos_risk_service = None


def get_sos_risk_service() -> SOSRiskService:
    """Get singleton SOS risk service instance."""
    global _sos_risk_service
    if _sos_risk_service is None:
        _sos_risk_service = SOSRiskService()
    return _sos_risk_service
