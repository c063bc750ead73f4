"""
Tourist Service - digital tourist IDs, SOS alert views and safety metrics.

Digital IDs carry a SHA-256 integrity ("blockchain") hash computed over their
identity fields at issue time, so tampering with a stored record can be
detected by recomputing it.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.utils.firestore_helpers import (
    where_filter,
    doc_to_dict,
    docs_to_list,
    parse_timestamp,
    sort_by_timestamp,
    utcnow,
)
from app.utils.geo import point_in_fence
from app.utils.security import generate_integrity_hash, mask_aadhaar
from datetime import datetime, timedelta
from typing import Dict, List, Optional
import logging
import re

logger = logging.getLogger(__name__)

HASHED_ID_FIELDS = (
    "tourist_name",
    "aadhaar_number",
    "passport_number",
    "trip_itinerary",
    "emergency_contacts",
    "valid_from",
    "valid_to",
)

AADHAAR_PATTERN = re.compile(r"^\d{12}$")
ANOMALY_ALERT_PREFIX = "anomaly_"
ANOMALY_AUTO_RESOLVE_AFTER = timedelta(hours=1)
ALERT_STATUSES = ("active", "responded", "resolved")

BASE_SAFETY_SCORE = 85


def anomaly_label(anomaly_type: str) -> str:
    return anomaly_type.replace("_", " ").upper()


def location_address(lat: float, lng: float) -> str:
    return f"Lat: {lat:.6f}, Lng: {lng:.6f}"


class TouristService:
    """
    Service for digital tourist IDs and the tourist-facing alert views.
    """

    def __init__(self):
        self.db = get_db()

    # ------------------------------------------------------------------
    # Digital tourist IDs
    # ------------------------------------------------------------------

    def _hash_payload(self, data: Dict) -> Dict:
        payload = {field: data.get(field) for field in HASHED_ID_FIELDS}
        for field in ("valid_from", "valid_to"):
            ts = parse_timestamp(payload[field])
            payload[field] = ts.isoformat() if ts else None
        return payload

    def create_digital_tourist_id(self, data: Dict) -> Dict:
        """
        Issue a digital tourist ID.

        Raises:
            ValueError: missing name, malformed Aadhaar number or bad validity window
        """
        tourist_name = (data.get("tourist_name") or "").strip()
        if not tourist_name:
            raise ValueError("Tourist name is required")

        aadhaar_number = re.sub(r"[\s-]", "", data.get("aadhaar_number") or "")
        if not aadhaar_number:
            raise ValueError("Aadhaar number is required")
        if not AADHAAR_PATTERN.match(aadhaar_number):
            raise ValueError("Aadhaar number must be 12 digits")

        valid_from = parse_timestamp(data.get("valid_from")) or utcnow()
        valid_to = parse_timestamp(data.get("valid_to")) or (valid_from + timedelta(days=30))
        if valid_to <= valid_from:
            raise ValueError("valid_to must be after valid_from")

        record = {
            "tourist_name": tourist_name,
            "aadhaar_number": aadhaar_number,
            "passport_number": data.get("passport_number") or None,
            "trip_itinerary": data.get("trip_itinerary") or "",
            "emergency_contacts": data.get("emergency_contacts") or [],
            "valid_from": valid_from,
            "valid_to": valid_to,
            "user_id": data.get("user_id"),
        }
        record["blockchain_hash"] = generate_integrity_hash(self._hash_payload(record))
        record["status"] = "active"
        record["issued_at"] = firestore.SERVER_TIMESTAMP

        ref = self.db.collection("digital_tourist_ids").document()
        ref.set(record)
        logger.info(f"Digital tourist ID issued: {ref.id}")
        return doc_to_dict(ref.get())

    def _refresh_expiry(self, record: Dict) -> Dict:
        """Mark an active ID as expired once valid_to has passed."""
        valid_to = parse_timestamp(record.get("valid_to"))
        if record.get("status") == "active" and valid_to and valid_to < utcnow():
            record["status"] = "expired"
            try:
                self.db.collection("digital_tourist_ids").document(record["id"]).update({"status": "expired"})
                logger.info(f"Digital tourist ID expired: {record['id']}")
            except Exception as e:
                logger.warning(f"Failed to persist expiry for {record['id']}: {e}")
        return record

    def get_all_digital_tourist_ids(self) -> List[Dict]:
        try:
            records = docs_to_list(self.db.collection("digital_tourist_ids").stream())
            return [self._refresh_expiry(r) for r in sort_by_timestamp(records, "issued_at")]
        except Exception as e:
            logger.error(f"Failed to fetch digital tourist IDs: {str(e)}")
            return []

    def get_digital_tourist_id(self, tourist_id: str) -> Optional[Dict]:
        if not tourist_id:
            return None
        try:
            record = doc_to_dict(self.db.collection("digital_tourist_ids").document(tourist_id).get())
        except Exception as e:
            logger.error(f"Failed to fetch digital tourist ID {tourist_id}: {str(e)}")
            return None
        return self._refresh_expiry(record) if record else None

    def get_digital_tourist_id_for_user(self, user_id: str) -> Optional[Dict]:
        try:
            query = where_filter(self.db.collection("digital_tourist_ids"), "user_id", "==", user_id)
            records = sort_by_timestamp(docs_to_list(query.stream()), "issued_at")
        except Exception as e:
            logger.error(f"Failed to fetch digital tourist ID for user {user_id}: {str(e)}")
            return None
        return self._refresh_expiry(records[0]) if records else None

    def revoke_digital_tourist_id(self, tourist_id: str) -> Dict:
        ref = self.db.collection("digital_tourist_ids").document(tourist_id)
        if not ref.get().exists:
            raise LookupError(f"Digital tourist ID not found: {tourist_id}")
        ref.update({"status": "revoked", "revoked_at": firestore.SERVER_TIMESTAMP})
        logger.info(f"Digital tourist ID revoked: {tourist_id}")
        return doc_to_dict(ref.get())

    def verify_digital_id_integrity(self, tourist_id: str) -> Dict:
        record = self.get_digital_tourist_id(tourist_id)
        if record is None:
            raise LookupError(f"Digital tourist ID not found: {tourist_id}")
        expected = generate_integrity_hash(self._hash_payload(record))
        return {
            "id": tourist_id,
            "valid": expected == record.get("blockchain_hash"),
            "status": record.get("status"),
            "blockchain_hash": record.get("blockchain_hash"),
        }

    @staticmethod
    def to_public(record: Dict) -> Dict:
        """Display form of an ID record with the Aadhaar number masked."""
        public = dict(record)
        public["aadhaar_number"] = mask_aadhaar(record.get("aadhaar_number"))
        return public

    # ------------------------------------------------------------------
    # SOS alert views
    # ------------------------------------------------------------------

    def _with_tourist_names(self, alerts: List[Dict]) -> List[Dict]:
        names: Dict[str, Optional[str]] = {}
        for alert in alerts:
            tourist_id = alert.get("tourist_id")
            if tourist_id not in names:
                record = self.get_digital_tourist_id(tourist_id)
                names[tourist_id] = record.get("tourist_name") if record else None
            alert["tourist_name"] = names[tourist_id]
        return alerts

    def get_all_sos_alerts(self) -> List[Dict]:
        try:
            alerts = docs_to_list(self.db.collection("sos_alerts").stream())
            return self._with_tourist_names(sort_by_timestamp(alerts, "created_at"))
        except Exception as e:
            logger.error(f"Failed to fetch SOS alerts: {str(e)}")
            return []

    def get_active_sos_alerts(self) -> List[Dict]:
        try:
            query = where_filter(self.db.collection("sos_alerts"), "status", "==", "active")
            alerts = docs_to_list(query.stream())
            return self._with_tourist_names(sort_by_timestamp(alerts, "created_at"))
        except Exception as e:
            logger.error(f"Failed to fetch active SOS alerts: {str(e)}")
            return []

    def create_sos_alert(self, data: Dict) -> Optional[Dict]:
        """Store a raw alert record. Returns None on failure."""
        try:
            record = dict(data)
            record.setdefault("status", "active")
            record["created_at"] = firestore.SERVER_TIMESTAMP
            record["updated_at"] = firestore.SERVER_TIMESTAMP
            ref = self.db.collection("sos_alerts").document()
            ref.set(record)
            logger.info(f"SOS alert stored: {ref.id} ({record.get('alert_type')})")
            return doc_to_dict(ref.get())
        except Exception as e:
            logger.error(f"Failed to create SOS alert: {str(e)}", exc_info=True)
            return None

    def update_sos_alert_status(self, alert_id: str, status: str) -> bool:
        if status not in ALERT_STATUSES:
            logger.warning(f"Rejected SOS status update to '{status}' for {alert_id}")
            return False
        try:
            self.db.collection("sos_alerts").document(alert_id).update({
                "status": status,
                "updated_at": firestore.SERVER_TIMESTAMP,
            })
            return True
        except Exception as e:
            logger.error(f"Failed to update SOS alert status: {str(e)}")
            return False

    # ------------------------------------------------------------------
    # Anomaly alerts
    # ------------------------------------------------------------------

    def create_anomaly_sos_alert(
        self,
        tourist_id: str,
        anomaly_type: str,
        severity_level: str,
        location: Dict,
        details: Optional[Dict] = None,
        recommendations: Optional[List[str]] = None,
    ) -> Optional[Dict]:
        lat, lng = location["lat"], location["lng"]
        alert_data = {
            "tourist_id": tourist_id,
            "alert_type": f"{ANOMALY_ALERT_PREFIX}{anomaly_type}",
            "message": f"AI Anomaly Detected: {anomaly_label(anomaly_type)} - Severity: {severity_level.upper()}",
            "latitude": lat,
            "longitude": lng,
            "address": location_address(lat, lng),
            "status": "active",
            "details": details or {},
            "recommendations": recommendations or [],
        }
        alert_data["blockchain_hash"] = generate_integrity_hash(
            {**alert_data, "issued_at": utcnow().isoformat()}
        )

        alert = self.create_sos_alert(alert_data)
        if alert and severity_level == "critical":
            self._trigger_emergency_protocol(tourist_id, anomaly_type, location)
        return alert

    def _trigger_emergency_protocol(self, tourist_id: str, anomaly_type: str, location: Dict) -> None:
        tourist = self.get_digital_tourist_id(tourist_id)
        if not tourist:
            logger.warning(f"Emergency protocol skipped, unknown tourist: {tourist_id}")
            return

        lat, lng = location["lat"], location["lng"]
        emergency_alert = {
            "tourist_id": tourist_id,
            "alert_type": "emergency_anomaly_critical",
            "message": f"CRITICAL EMERGENCY: {tourist['tourist_name']} - {anomaly_label(anomaly_type)}",
            "latitude": lat,
            "longitude": lng,
            "address": f"Emergency Location: {lat:.6f}, {lng:.6f}",
            "status": "active",
        }
        emergency_alert["blockchain_hash"] = generate_integrity_hash(
            {**emergency_alert, "issued_at": utcnow().isoformat()}
        )
        self.create_sos_alert(emergency_alert)
        logger.warning(f"Emergency protocol triggered for tourist {tourist['tourist_name']}")

    def get_anomaly_alerts(self) -> List[Dict]:
        alerts = [
            a for a in self.get_all_sos_alerts()
            if str(a.get("alert_type", "")).startswith(ANOMALY_ALERT_PREFIX)
        ]
        return alerts

    def get_critical_anomaly_alerts(self) -> List[Dict]:
        try:
            query = where_filter(self.db.collection("sos_alerts"), "alert_type", "==", "anomaly_silent_distress")
            alerts = [a for a in docs_to_list(query.stream()) if a.get("status") == "active"]
            return self._with_tourist_names(sort_by_timestamp(alerts, "created_at"))
        except Exception as e:
            logger.error(f"Failed to fetch critical anomaly alerts: {str(e)}")
            return []

    def auto_resolve_anomaly_alerts(self, now: Optional[datetime] = None) -> int:
        """
        Resolve active anomaly alerts older than one hour.
        Silent-distress alerts stay open until a human resolves them.
        """
        now = parse_timestamp(now) or utcnow()
        cutoff = now - ANOMALY_AUTO_RESOLVE_AFTER
        resolved = 0
        try:
            query = where_filter(self.db.collection("sos_alerts"), "status", "==", "active")
            for alert in docs_to_list(query.stream()):
                alert_type = str(alert.get("alert_type", ""))
                if not alert_type.startswith(ANOMALY_ALERT_PREFIX) or alert_type == "anomaly_silent_distress":
                    continue
                created_at = parse_timestamp(alert.get("created_at"))
                if created_at and created_at < cutoff:
                    self.db.collection("sos_alerts").document(alert["id"]).update({
                        "status": "resolved",
                        "updated_at": now,
                        "notes": "Auto-resolved after 1 hour",
                    })
                    resolved += 1
        except Exception as e:
            logger.error(f"Failed to auto-resolve anomaly alerts: {str(e)}")
        if resolved:
            logger.info(f"Auto-resolved {resolved} anomaly alerts")
        return resolved

    # ------------------------------------------------------------------
    # Locations and metrics
    # ------------------------------------------------------------------

    def get_latest_tourist_locations(self, limit: int = 100) -> List[Dict]:
        try:
            locations = docs_to_list(self.db.collection("tourist_locations").stream())
            return sort_by_timestamp(locations, "timestamp")[:limit]
        except Exception as e:
            logger.error(f"Failed to fetch tourist locations: {str(e)}")
            return []

    def get_safety_metrics(self) -> Dict:
        metrics = {
            "total_tourists": 0,
            "active_tourists": 0,
            "total_alerts": 0,
            "active_alerts": 0,
            "safe_zones": 0,
            "danger_zones": 0,
            "restricted_zones": 0,
        }
        try:
            tourists = docs_to_list(self.db.collection("digital_tourist_ids").stream())
            alerts = docs_to_list(self.db.collection("sos_alerts").stream())
            fences = [f for f in docs_to_list(self.db.collection("geo_fences").stream()) if f.get("active", True)]

            metrics["total_tourists"] = len(tourists)
            metrics["active_tourists"] = sum(1 for t in tourists if t.get("status") == "active")
            metrics["total_alerts"] = len(alerts)
            metrics["active_alerts"] = sum(1 for a in alerts if a.get("status") == "active")
            metrics["safe_zones"] = sum(1 for f in fences if f.get("type") == "safe")
            metrics["danger_zones"] = sum(1 for f in fences if f.get("type") == "danger")
            metrics["restricted_zones"] = sum(1 for f in fences if f.get("type") == "restricted")
        except Exception as e:
            logger.error(f"Failed to compute safety metrics: {str(e)}")
            return {key: 0 for key in metrics}
        return metrics

    def check_current_geofence(self, lat: float, lng: float, geofences: List[Dict]) -> Optional[Dict]:
        for fence in geofences:
            if point_in_fence(lat, lng, fence.get("coordinates")):
                return fence
        return None

    def calculate_safety_score(self, tourist_id: str, location: Optional[Dict] = None) -> int:
        """
        Base 85, minus 10 per active alert for the tourist (at most 40), minus
        20 inside a danger fence or 10 inside a restricted fence.
        """
        score = BASE_SAFETY_SCORE
        try:
            query = where_filter(self.db.collection("sos_alerts"), "tourist_id", "==", tourist_id)
            active = sum(1 for a in docs_to_list(query.stream()) if a.get("status") == "active")
            score -= min(active * 10, 40)

            if location:
                fences = [
                    f for f in docs_to_list(self.db.collection("geo_fences").stream())
                    if f.get("active", True)
                ]
                fence = self.check_current_geofence(location["lat"], location["lng"], fences)
                if fence and fence.get("type") == "danger":
                    score -= 20
                elif fence and fence.get("type") == "restricted":
                    score -= 10
        except Exception as e:
            logger.warning(f"Safety score degraded to base for {tourist_id}: {e}")
            return BASE_SAFETY_SCORE
        return max(0, min(100, score))


# Singleton instance
_tourist_service = None


def get_tourist_service() -> TouristService:
    """Get singleton tourist service instance."""
    global _tourist_service
    if _tourist_service is None:
        _tourist_service = TouristService()
    return _tourist_service
