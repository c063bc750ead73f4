"""
SOS Service - emergency alert lifecycle.

Lifecycle: active → assigned → resolved, or active → cancelled.
Creating an alert notifies authorities and the tourist's emergency contacts.
Notification failures are logged and never fail the alert itself.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.services.geo_service import MOCK_RISK_AREAS, get_geo_service
from app.services.notification_service import get_notification_service
from app.utils.firestore_helpers import where_filter, doc_to_dict, docs_to_list, sort_by_timestamp, utcnow
from app.utils.geo import haversine_km
from app.utils.security import generate_integrity_hash
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

SOS_TYPES = ("panic", "medical", "security", "general")
OPEN_STATUSES = ("active", "assigned")


class AlertStateError(ValueError):
    """The alert's current status does not allow the requested change."""


MOCK_EMERGENCY_CONTACTS = [
    {"name": "Primary Contact", "number": "+91-98765-43210", "type": "primary"},
    {"name": "Secondary Contact", "number": "+91-87654-32109", "type": "secondary"},
    {"name": "Local Police", "number": "100", "type": "emergency"},
    {"name": "Tourism Helpline", "number": "1363", "type": "emergency"},
]

# Extra minutes on top of travel time, by alert type
RESPONSE_TYPE_OFFSET = {"medical": 0, "panic": 0, "security": 2, "general": 5}
MIN_RESPONSE_MINUTES = 5
MAX_RESPONSE_MINUTES = 20


def to_sos_alert(record: Dict) -> Dict:
    """Stored alert record → API shape."""
    return {
        "id": record["id"],
        "timestamp": record.get("created_at"),
        "type": record.get("alert_type", "general"),
        "status": record.get("status", "active"),
        "location": {
            "latitude": record.get("latitude"),
            "longitude": record.get("longitude"),
            "address": record.get("address"),
        },
        "tourist_id": record.get("tourist_id"),
        "message": record.get("message"),
        "response_time": record.get("estimated_response_time"),
        "notes": record.get("notes"),
        "assigned_responder": record.get("assigned_responder"),
    }


def validate_sos_location(location: Optional[Dict]) -> None:
    if not location or location.get("latitude") is None or location.get("longitude") is None:
        raise ValueError("Valid location coordinates are required")
    if not -90 <= location["latitude"] <= 90:
        raise ValueError("Invalid latitude: must be between -90 and 90")
    if not -180 <= location["longitude"] <= 180:
        raise ValueError("Invalid longitude: must be between -180 and 180")


class SOSService:
    """
    Service for SOS alerts and emergency contacts.
    """

    def __init__(self):
        self.db = get_db()

    def create_sos_alert(self, request: Dict) -> Dict:
        """
        Raise an SOS alert.

        Returns:
            {"id", "status", "timestamp", "estimated_response_time"}

        Raises:
            ValueError: missing tourist id or invalid location
        """
        tourist_id = (request.get("tourist_id") or "").strip()
        if not tourist_id:
            raise ValueError("Tourist ID is required")
        location = request.get("location") or {}
        validate_sos_location(location)

        alert_type = request.get("type") or "general"
        if alert_type not in SOS_TYPES:
            raise ValueError(f"Invalid SOS type: {alert_type}")

        estimated = self.calculate_response_time(location, alert_type)
        record = {
            "tourist_id": tourist_id,
            "alert_type": alert_type,
            "latitude": location["latitude"],
            "longitude": location["longitude"],
            "address": location.get("address") or None,
            "message": request.get("message") or None,
            "status": "active",
            "estimated_response_time": estimated,
        }
        record["blockchain_hash"] = generate_integrity_hash({**record, "issued_at": utcnow().isoformat()})
        record["created_at"] = firestore.SERVER_TIMESTAMP
        record["updated_at"] = firestore.SERVER_TIMESTAMP

        ref = self.db.collection("sos_alerts").document()
        ref.set(record)
        alert = to_sos_alert(doc_to_dict(ref.get()))
        logger.warning(f"SOS alert raised: {ref.id} ({alert_type}) by tourist {tourist_id}")

        notifications = get_notification_service()
        try:
            notifications.notify_authorities(alert)
        except Exception as e:
            logger.error(f"Failed to notify authorities for {ref.id}: {str(e)}")
        try:
            notifications.notify_emergency_contacts(tourist_id, alert, self.get_emergency_contacts(tourist_id))
        except Exception as e:
            logger.error(f"Failed to notify emergency contacts for {ref.id}: {str(e)}")

        return {
            "id": alert["id"],
            "status": alert["status"],
            "timestamp": alert["timestamp"],
            "estimated_response_time": estimated,
        }

    def _get_alert_ref(self, alert_id: str):
        if not alert_id or not alert_id.strip():
            raise ValueError("Alert ID is required")
        ref = self.db.collection("sos_alerts").document(alert_id.strip())
        if not ref.get().exists:
            raise LookupError(f"SOS alert not found: {alert_id}")
        return ref

    def get_alert(self, alert_id: str) -> Dict:
        return to_sos_alert(doc_to_dict(self._get_alert_ref(alert_id).get()))

    def cancel_sos_alert(self, alert_id: str) -> Dict:
        """Only open (active or assigned) alerts can be cancelled."""
        ref = self._get_alert_ref(alert_id)
        current = ref.get().to_dict().get("status")
        if current not in OPEN_STATUSES:
            raise AlertStateError(f"Cannot cancel an alert that is {current}")
        ref.update({"status": "cancelled", "updated_at": firestore.SERVER_TIMESTAMP})
        logger.info(f"SOS alert cancelled: {alert_id}")
        try:
            get_notification_service().notify_alert_cancellation(ref.id)
        except Exception as e:
            logger.error(f"Failed to send cancellation for {alert_id}: {str(e)}")
        return to_sos_alert(doc_to_dict(ref.get()))

    def get_sos_history(self, tourist_id: str) -> List[Dict]:
        if not tourist_id or not tourist_id.strip():
            raise ValueError("Tourist ID is required")
        query = where_filter(self.db.collection("sos_alerts"), "tourist_id", "==", tourist_id.strip())
        return [to_sos_alert(r) for r in sort_by_timestamp(docs_to_list(query.stream()), "created_at")]

    def get_active_alerts(self) -> List[Dict]:
        query = where_filter(self.db.collection("sos_alerts"), "status", "in", list(OPEN_STATUSES))
        return [to_sos_alert(r) for r in sort_by_timestamp(docs_to_list(query.stream()), "created_at")]

    def assign_alert(self, alert_id: str, responder_id: str) -> Dict:
        if not alert_id or not alert_id.strip():
            raise ValueError("Alert ID is required")
        if not responder_id or not responder_id.strip():
            raise ValueError("Responder ID is required")
        ref = self._get_alert_ref(alert_id)
        ref.update({
            "status": "assigned",
            "assigned_responder": responder_id.strip(),
            "updated_at": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"SOS alert {alert_id} assigned to {responder_id}")
        return to_sos_alert(doc_to_dict(ref.get()))

    def resolve_alert(self, alert_id: str, notes: Optional[str] = None) -> Dict:
        ref = self._get_alert_ref(alert_id)
        ref.update({
            "status": "resolved",
            "notes": (notes or "").strip() or None,
            "resolved_at": firestore.SERVER_TIMESTAMP,
            "updated_at": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"SOS alert resolved: {alert_id}")
        return to_sos_alert(doc_to_dict(ref.get()))

    # ------------------------------------------------------------------
    # Emergency contacts
    # ------------------------------------------------------------------

    def get_emergency_contacts(self, tourist_id: str) -> List[Dict]:
        """Stored contacts, or the default helpline set when none are available."""
        try:
            if not tourist_id or not tourist_id.strip():
                raise ValueError("Tourist ID is required")
            query = where_filter(self.db.collection("emergency_contacts"), "tourist_id", "==", tourist_id.strip())
            contacts = [
                {
                    "id": c["id"],
                    "name": c.get("name"),
                    "number": c.get("phone_number"),
                    "type": c.get("type", "primary"),
                    "relationship": c.get("relationship"),
                }
                for c in docs_to_list(query.stream())
            ]
        except Exception as e:
            logger.error(f"Failed to get emergency contacts: {str(e)}")
            contacts = []
        return contacts or [dict(c) for c in MOCK_EMERGENCY_CONTACTS]

    def add_emergency_contact(self, tourist_id: str, contact: Dict) -> Dict:
        if not tourist_id or not tourist_id.strip():
            raise ValueError("Tourist ID is required")
        if not (contact.get("name") or "").strip():
            raise ValueError("Contact name is required")
        if not (contact.get("number") or "").strip():
            raise ValueError("Contact number is required")

        ref = self.db.collection("emergency_contacts").document()
        ref.set({
            "tourist_id": tourist_id.strip(),
            "name": contact["name"].strip(),
            "phone_number": contact["number"].strip(),
            "type": contact.get("type") or "primary",
            "relationship": contact.get("relationship"),
            "created_at": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Emergency contact added for tourist {tourist_id}")
        return {"id": ref.id, "name": contact["name"].strip(), "number": contact["number"].strip(),
                "type": contact.get("type") or "primary", "relationship": contact.get("relationship")}

    # ------------------------------------------------------------------
    # Response time
    # ------------------------------------------------------------------

    def calculate_response_time(self, location: Dict, alert_type: str = "general") -> int:
        """
        Minutes until a responder arrives: one minute per km to the nearest
        patrolled risk area (at most 10), plus an alert-type offset, clamped
        to 5..20.
        """
        try:
            areas = get_geo_service().get_risk_areas() or MOCK_RISK_AREAS
        except Exception as e:
            logger.warning(f"Risk areas unavailable for response estimate: {e}")
            areas = MOCK_RISK_AREAS

        distances = [
            haversine_km(location["latitude"], location["longitude"],
                         area["center"]["latitude"], area["center"]["longitude"])
            for area in areas
            if area.get("center", {}).get("latitude") is not None
        ]
        travel = min(min(distances), 10) if distances else 10
        minutes = MIN_RESPONSE_MINUTES + travel + RESPONSE_TYPE_OFFSET.get(alert_type, 5)
        return int(max(MIN_RESPONSE_MINUTES, min(MAX_RESPONSE_MINUTES, round(minutes))))


# Singleton instance
_sos_service = None


def get_sos_service() -> SOSService:
    """Get singleton SOS service instance."""
    global _sos_service
    if _sos_service is None:
        _sos_service = SOSService()
    return _sos_service
