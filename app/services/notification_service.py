"""
Notification Service - outbound alerts to authorities and emergency contacts.

Each send fans out per recipient: a JSON POST to NOTIFICATION_WEBHOOK_URL when
one is configured, otherwise a log line. Every send is recorded in the
"notifications" collection. There is no retry: a failed recipient is logged
and the remaining recipients are still attempted.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.core.settings import settings
from app.utils.firestore_helpers import docs_to_list, sort_by_timestamp, utcnow
from typing import Dict, List, Optional
import logging
import requests

logger = logging.getLogger(__name__)


# Nearby police stations. There is no station registry yet, so every
# location resolves to the same two units.
POLICE_STATIONS = [
    {"id": "police_station_1", "name": "Central Police Station"},
    {"id": "police_station_2", "name": "Tourist Police Unit"},
]

ANOMALY_DESCRIPTIONS = {
    "sudden_drop_off": "Sudden location change detected - possible transportation issue",
    "prolonged_inactivity": "Tourist has been inactive for an extended period",
    "route_deviation": "Tourist has deviated significantly from planned route",
    "silent_distress": "Pattern indicates potential distress situation",
    "risk_zone_entry": "Tourist has entered a high-risk area",
}

EMERGENCY_RECOMMENDATIONS = [
    "Dispatch emergency response team immediately",
    "Contact tourist's emergency contact",
    "Monitor location and provide updates",
    "Coordinate with local authorities",
]

BULK_GROUPS = {
    "police": {"id": "all_police", "name": "All Police Stations", "type": "police"},
    "authorities": {"id": "tourism_authority", "name": "Tourism Authority", "type": "authority"},
}


def _recipient(recipient_id: str, name: str, recipient_type: str, priority: str, **extra) -> Dict:
    recipient = {"id": recipient_id, "name": name, "type": recipient_type, "priority": priority}
    recipient.update({k: v for k, v in extra.items() if v})
    return recipient


class NotificationService:
    """
    Dispatches notification messages and keeps an audit trail of what was sent.
    """

    def __init__(self):
        self.db = get_db()
        self.webhook_url = settings.NOTIFICATION_WEBHOOK_URL
        self.timeout = settings.NOTIFICATION_TIMEOUT_SECONDS

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _deliver(self, recipient: Dict, message: Dict) -> None:
        if not self.webhook_url:
            logger.info(
                f"[NOTIFY] {message['severity']} -> {recipient['name']} ({recipient['type']}): "
                f"{message['title']}"
            )
            return

        response = requests.post(
            self.webhook_url,
            json={"recipient": recipient, "message": message},
            timeout=self.timeout,
        )
        response.raise_for_status()

    def send_to_recipients(self, kind: str, recipients: List[Dict], message: Dict) -> Dict:
        """
        Deliver a message to each recipient and record the send.

        Returns:
            {"id", "kind", "sent", "failed"}. Never raises.
        """
        message.setdefault("timestamp", utcnow().isoformat())
        sent, failed = [], []

        for recipient in recipients:
            try:
                self._deliver(recipient, message)
                sent.append(recipient["id"])
            except Exception as e:
                logger.error(f"Failed to send notification to {recipient['name']}: {str(e)}")
                failed.append(recipient["id"])

        record = {
            "kind": kind,
            "title": message["title"],
            "message": message["message"],
            "severity": message["severity"],
            "recipients": recipients,
            "sent": sent,
            "failed": failed,
            "payload": message,
            "created_at": firestore.SERVER_TIMESTAMP,
        }
        notification_id = None
        try:
            ref = self.db.collection("notifications").document()
            ref.set(record)
            notification_id = ref.id
            logger.info(f"Notification logged: {message['title']} sent to {len(sent)}/{len(recipients)} recipients")
        except Exception as e:
            logger.error(f"Failed to log notification: {str(e)}")

        return {"id": notification_id, "kind": kind, "sent": sent, "failed": failed}

    # ------------------------------------------------------------------
    # SOS notifications
    # ------------------------------------------------------------------

    def notify_authorities(self, alert: Dict) -> Dict:
        location = alert.get("location") or {}
        recipients = [
            _recipient(station["id"], station["name"], "police", "critical")
            for station in POLICE_STATIONS
        ]
        message = {
            "title": f"SOS Alert: {str(alert.get('type', 'general')).upper()}",
            "message": alert.get("message") or "Tourist triggered an SOS alert.",
            "severity": "critical",
            "location": {"lat": location.get("latitude"), "lng": location.get("longitude")},
            "tourist_info": {"id": alert.get("tourist_id")},
            "alert_id": alert.get("id"),
        }
        return self.send_to_recipients("notify-authorities", recipients, message)

    def notify_emergency_contacts(self, tourist_id: str, alert: Dict, contacts: List[Dict]) -> Dict:
        recipients = [
            _recipient(
                contact.get("id") or f"contact_{index}",
                contact.get("name", "Emergency Contact"),
                "tourist_family" if contact.get("type") != "emergency" else "emergency_contact",
                "high",
                phone=contact.get("number"),
            )
            for index, contact in enumerate(contacts)
        ]
        location = alert.get("location") or {}
        message = {
            "title": "Emergency alert from your contact",
            "message": (
                f"An SOS alert was raised at {location.get('address') or 'an unknown address'}. "
                "Authorities have been notified."
            ),
            "severity": "high",
            "location": {"lat": location.get("latitude"), "lng": location.get("longitude")},
            "tourist_info": {"id": tourist_id},
            "alert_id": alert.get("id"),
        }
        return self.send_to_recipients("notify-emergency-contacts", recipients, message)

    def notify_alert_cancellation(self, alert_id: str) -> Dict:
        recipients = [
            _recipient(station["id"], station["name"], "police", "medium")
            for station in POLICE_STATIONS
        ]
        message = {
            "title": "SOS Alert Cancelled",
            "message": f"SOS alert {alert_id} was cancelled by the tourist.",
            "severity": "low",
            "alert_id": alert_id,
        }
        return self.send_to_recipients("notify-alert-cancellation", recipients, message)

    # ------------------------------------------------------------------
    # Anomaly / emergency notifications
    # ------------------------------------------------------------------

    def _tourist_name(self, tourist_id: str) -> str:
        try:
            doc = self.db.collection("digital_tourist_ids").document(tourist_id).get()
            if doc.exists:
                return doc.to_dict().get("tourist_name") or "Unknown Tourist"
        except Exception as e:
            logger.warning(f"Tourist lookup failed for notification: {e}")
        return "Unknown Tourist"

    def build_anomaly_message(
        self,
        anomaly_type: str,
        severity: str,
        tourist_name: str,
        location: Dict,
    ) -> str:
        description = ANOMALY_DESCRIPTIONS.get(anomaly_type, "Anomaly detected")
        return (
            "AI Anomaly Detection Alert\n\n"
            f"Tourist: {tourist_name}\n"
            f"Anomaly Type: {anomaly_type.replace('_', ' ')}\n"
            f"Severity: {severity.upper()}\n"
            f"Location: {location['lat']:.6f}, {location['lng']:.6f}\n"
            f"Time: {utcnow().strftime('%Y-%m-%d %H:%M:%S UTC')}\n\n"
            f"Description: {description}\n\n"
            "Please assess the situation and take appropriate action."
        )

    def send_anomaly_notification(
        self,
        anomaly_type: str,
        severity: str,
        tourist_id: str,
        location: Dict,
        details: Optional[Dict] = None,
        recommendations: Optional[List[str]] = None,
    ) -> Dict:
        tourist_name = self._tourist_name(tourist_id)

        recipients = [
            _recipient(station["id"], station["name"], "police", severity)
            for station in POLICE_STATIONS
        ]
        if severity in ("high", "critical"):
            recipients.append(_recipient("emergency_services", "Emergency Services", "authority", severity))

        message = {
            "title": f"AI Anomaly Alert: {anomaly_type.replace('_', ' ').upper()}",
            "message": self.build_anomaly_message(anomaly_type, severity, tourist_name, location),
            "severity": severity,
            "location": location,
            "tourist_info": {"id": tourist_id, "name": tourist_name},
            "recommendations": recommendations or [],
            "details": details or {},
        }
        return self.send_to_recipients("anomaly", recipients, message)

    def send_emergency_notification(
        self,
        tourist_id: str,
        location: Dict,
        emergency_type: str,
        details: Optional[Dict] = None,
    ) -> Dict:
        tourist_name = self._tourist_name(tourist_id)

        recipients = [
            _recipient(station["id"], station["name"], "police", "critical")
            for station in POLICE_STATIONS
        ]
        recipients.append(_recipient("emergency_services", "Emergency Response Team", "authority", "critical"))
        recipients.append(_recipient("medical_services", "Medical Emergency Services", "authority", "critical"))

        message = {
            "title": f"CRITICAL EMERGENCY: {tourist_name}",
            "message": f"Emergency situation detected: {emergency_type}. Immediate response required.",
            "severity": "critical",
            "location": location,
            "tourist_info": {"id": tourist_id, "name": tourist_name},
            "recommendations": list(EMERGENCY_RECOMMENDATIONS),
            "details": details or {},
        }
        return self.send_to_recipients("emergency", recipients, message)

    def send_bulk_notification(self, title: str, message: str, severity: str, target_groups: List[str]) -> Dict:
        unknown = [group for group in target_groups if group not in BULK_GROUPS]
        if unknown:
            raise ValueError(f"Unknown target groups: {unknown}. Allowed: {list(BULK_GROUPS)}")

        recipients = [
            _recipient(BULK_GROUPS[group]["id"], BULK_GROUPS[group]["name"], BULK_GROUPS[group]["type"], "high")
            for group in target_groups
        ]
        payload = {"title": title, "message": message, "severity": severity}
        return self.send_to_recipients("bulk", recipients, payload)

    def get_notifications(self, limit: int = 50) -> List[Dict]:
        try:
            items = docs_to_list(self.db.collection("notifications").stream())
            return sort_by_timestamp(items, "created_at")[:limit]
        except Exception as e:
            logger.error(f"Failed to fetch notifications: {str(e)}")
            return []


# Singleton instance
_notification_service = None


def get_notification_service() -> NotificationService:
    """Get singleton notification service instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
