"""
Police Dashboard Service - authority views over tourists, alerts and cases.

Missing-person cases are SOS alerts of type "other" carrying extra case
fields; their case number is "MP-" plus the first 8 characters of the alert id.
All list reads return empty results on store errors.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.services.geo_service import get_geo_service
from app.utils.firestore_helpers import (
    where_filter,
    doc_to_dict,
    docs_to_list,
    parse_timestamp,
    sort_by_timestamp,
    utcnow,
)
from app.utils.geo import haversine_meters
from app.utils.security import generate_integrity_hash
from datetime import datetime, timedelta
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

CLUSTER_RADIUS_METERS = 1000
MISSING_PERSON_ALERT_TYPE = "other"


def case_number(alert_id: str) -> str:
    return f"MP-{alert_id[:8]}"


def response_minutes(alert: Dict) -> Optional[int]:
    """Minutes from creation to last update for alerts that left "active"."""
    if alert.get("status") == "active":
        return None
    created_at = parse_timestamp(alert.get("created_at"))
    updated_at = parse_timestamp(alert.get("updated_at"))
    if created_at is None or updated_at is None:
        return None
    return round((updated_at - created_at).total_seconds() / 60)


def cluster_locations(locations: List[Dict], cluster_date: str) -> List[Dict]:
    """
    Greedy grouping: each unprocessed location seeds a cluster that absorbs
    every other unprocessed location within CLUSTER_RADIUS_METERS of it.
    """
    clusters = []
    processed = set()
    for index, seed in enumerate(locations):
        if index in processed:
            continue
        lat, lng = float(seed["latitude"]), float(seed["longitude"])
        members = [
            i for i, loc in enumerate(locations)
            if i not in processed
            and haversine_meters(lat, lng, float(loc["latitude"]), float(loc["longitude"])) <= CLUSTER_RADIUS_METERS
        ]
        processed.update(members)
        count = len(members)

        hourly: Dict[str, int] = {}
        for i in members:
            ts = parse_timestamp(locations[i].get("timestamp"))
            if ts:
                hour = f"{ts.hour:02d}"
                hourly[hour] = hourly.get(hour, 0) + 1

        clusters.append({
            "id": f"cluster_{lat}_{lng}",
            "area_name": f"Area {len(clusters) + 1}",
            "center_lat": lat,
            "center_lng": lng,
            "radius_meters": CLUSTER_RADIUS_METERS,
            "tourist_count": count,
            "risk_level": "high" if count > 10 else "medium" if count > 5 else "low",
            "cluster_date": cluster_date,
            "hourly_data": hourly,
            "last_updated": utcnow().isoformat(),
        })
    return clusters


class PoliceDashboardService:
    """
    Service backing the authority dashboard.
    """

    def __init__(self):
        self.db = get_db()

    def _tourist_name(self, tourist_id: Optional[str]) -> Optional[str]:
        if not tourist_id:
            return None
        record = doc_to_dict(self.db.collection("digital_tourist_ids").document(tourist_id).get())
        return record.get("tourist_name") if record else None

    # ------------------------------------------------------------------
    # Clusters and risk zones
    # ------------------------------------------------------------------

    def get_tourist_clusters(self, since: Optional[datetime] = None) -> List[Dict]:
        since = parse_timestamp(since) or (utcnow() - timedelta(hours=24))
        try:
            locations = [
                loc for loc in docs_to_list(self.db.collection("tourist_locations").stream())
                if (parse_timestamp(loc.get("timestamp")) or since) >= since
            ]
        except Exception as e:
            logger.error(f"Error fetching tourist clusters: {str(e)}")
            return []
        return cluster_locations(sort_by_timestamp(locations, "timestamp", descending=False), since.date().isoformat())

    @staticmethod
    def _to_risk_zone(fence: Dict) -> Dict:
        return {
            "id": fence["id"],
            "name": fence.get("name"),
            "coordinates": fence.get("coordinates") if isinstance(fence.get("coordinates"), list) else [],
            "risk_level": fence.get("risk_level") or "medium",
            "risk_factors": fence.get("risk_factors") or ([fence["description"]] if fence.get("description") else []),
            "incident_count": fence.get("incident_count", 0),
            "recommendations": fence.get("recommendations") or fence.get("description") or "Monitor this area",
            "active": fence.get("active", True),
        }

    def get_risk_zones(self) -> List[Dict]:
        try:
            fences = get_geo_service().get_geofences()
        except Exception as e:
            logger.error(f"Error fetching risk zones: {str(e)}")
            return []
        return [self._to_risk_zone(f) for f in fences]

    def create_risk_zone(self, zone: Dict) -> Dict:
        fence = get_geo_service().create_geofence({
            "name": zone.get("name"),
            "type": "risk_zone",
            "description": zone.get("recommendations") or "",
            "coordinates": zone.get("coordinates"),
            "risk_level": zone.get("risk_level") or "medium",
            "risk_factors": zone.get("risk_factors") or [],
            "recommendations": zone.get("recommendations") or "",
        })
        return self._to_risk_zone(fence)

    # ------------------------------------------------------------------
    # Digital ID records
    # ------------------------------------------------------------------

    def _enrich_record(self, record: Dict) -> Dict:
        query = where_filter(self.db.collection("tourist_locations"), "tourist_id", "==", record["id"])
        locations = sort_by_timestamp(docs_to_list(query.stream()), "timestamp")
        record["current_location"] = (
            {"lat": locations[0]["latitude"], "lng": locations[0]["longitude"], "timestamp": locations[0].get("timestamp")}
            if locations else None
        )
        alerts = where_filter(self.db.collection("sos_alerts"), "tourist_id", "==", record["id"])
        record["active_alerts"] = sum(1 for a in docs_to_list(alerts.stream()) if a.get("status") == "active")
        return record

    def get_digital_id_records(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Dict:
        try:
            query = self.db.collection("digital_tourist_ids")
            if status:
                query = where_filter(query, "status", "==", status)
            records = docs_to_list(query.stream())

            if search:
                needle = search.lower()
                records = [
                    r for r in records
                    if needle in (r.get("tourist_name") or "").lower()
                    or needle in (r.get("aadhaar_number") or "").lower()
                ]

            records = sort_by_timestamp(records, "issued_at")
            page = [self._enrich_record(r) for r in records[offset:offset + limit]]
            return {"records": page, "total": len(records)}
        except Exception as e:
            logger.error(f"Error fetching digital ID records: {str(e)}")
            return {"records": [], "total": 0}

    def get_digital_id_record(self, record_id: str) -> Optional[Dict]:
        try:
            record = doc_to_dict(self.db.collection("digital_tourist_ids").document(record_id).get())
            return self._enrich_record(record) if record else None
        except Exception as e:
            logger.error(f"Error fetching digital ID record: {str(e)}")
            return None

    # ------------------------------------------------------------------
    # Alert history
    # ------------------------------------------------------------------

    def get_alert_history(
        self,
        tourist_id: Optional[str] = None,
        status: Optional[str] = None,
        alert_type: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Dict:
        try:
            query = self.db.collection("sos_alerts")
            if tourist_id:
                query = where_filter(query, "tourist_id", "==", tourist_id)
            alerts = docs_to_list(query.stream())
        except Exception as e:
            logger.error(f"Error fetching alert history: {str(e)}")
            return {"alerts": [], "total": 0}

        date_from = parse_timestamp(date_from)
        date_to = parse_timestamp(date_to)
        filtered = []
        for alert in alerts:
            if status and alert.get("status") != status:
                continue
            if alert_type and alert.get("alert_type") != alert_type:
                continue
            created_at = parse_timestamp(alert.get("created_at"))
            if date_from and (created_at is None or created_at < date_from):
                continue
            if date_to and (created_at is None or created_at > date_to):
                continue
            filtered.append(alert)

        filtered = sort_by_timestamp(filtered, "created_at")
        page = filtered[offset:offset + limit]
        for alert in page:
            alert["tourist_name"] = self._tourist_name(alert.get("tourist_id"))
            alert["response_time"] = response_minutes(alert)
        return {"alerts": page, "total": len(filtered)}

    def update_alert_status(self, alert_id: str, status: str) -> Dict:
        ref = self.db.collection("sos_alerts").document(alert_id)
        if not ref.get().exists:
            raise LookupError(f"SOS alert not found: {alert_id}")
        ref.update({"status": status, "updated_at": firestore.SERVER_TIMESTAMP})
        return doc_to_dict(ref.get())

    # ------------------------------------------------------------------
    # Missing persons and E-FIR
    # ------------------------------------------------------------------

    def _to_case(self, alert: Dict) -> Dict:
        return {
            "id": alert["id"],
            "tourist_id": alert.get("tourist_id"),
            "tourist_name": self._tourist_name(alert.get("tourist_id")),
            "reported_by_user_id": alert.get("reported_by_user_id") or "system",
            "case_number": case_number(alert["id"]),
            "status": alert.get("status"),
            "last_known_location": {
                "lat": alert.get("latitude"),
                "lng": alert.get("longitude"),
                "address": alert.get("address") or "Unknown location",
                "timestamp": alert.get("last_seen_at") or alert.get("created_at"),
            },
            "last_contact_time": alert.get("last_contact_time") or alert.get("created_at"),
            "missing_since": alert.get("missing_since") or alert.get("created_at"),
            "description": alert.get("message"),
            "circumstances": alert.get("circumstances"),
            "physical_description": alert.get("physical_description"),
            "clothing_description": alert.get("clothing_description"),
            "emergency_contacts": alert.get("case_emergency_contacts") or {},
            "priority_level": alert.get("priority_level") or "medium",
            "efir_generated": bool(alert.get("efir_generated")),
            "efir_number": alert.get("efir_number"),
            "created_at": alert.get("created_at"),
            "updated_at": alert.get("updated_at"),
        }

    def get_missing_persons(self, status: Optional[str] = None, limit: int = 10, offset: int = 0) -> Dict:
        try:
            query = where_filter(self.db.collection("sos_alerts"), "alert_type", "==", MISSING_PERSON_ALERT_TYPE)
            alerts = docs_to_list(query.stream())
        except Exception as e:
            logger.error(f"Error fetching missing persons: {str(e)}")
            return {"cases": [], "total": 0}

        if status:
            alerts = [a for a in alerts if a.get("status") == status]
        alerts = sort_by_timestamp(alerts, "created_at")
        return {"cases": [self._to_case(a) for a in alerts[offset:offset + limit]], "total": len(alerts)}

    def create_missing_person_case(self, data: Dict) -> Dict:
        tourist_id = (data.get("tourist_id") or "").strip()
        if not tourist_id:
            raise ValueError("Tourist ID is required")
        location = data.get("last_known_location") or {}
        if location.get("lat") is None or location.get("lng") is None:
            raise ValueError("Last known location is required")

        now = utcnow()
        record = {
            "tourist_id": tourist_id,
            "alert_type": MISSING_PERSON_ALERT_TYPE,
            "status": data.get("status") or "active",
            "latitude": location["lat"],
            "longitude": location["lng"],
            "address": location.get("address") or "Unknown location",
            "message": f"Missing Person Case: {data.get('description') or 'No description'}",
            "reported_by_user_id": data.get("reported_by_user_id"),
            "last_seen_at": parse_timestamp(location.get("timestamp")) or now,
            "last_contact_time": parse_timestamp(data.get("last_contact_time")) or now,
            "missing_since": parse_timestamp(data.get("missing_since")) or now,
            "circumstances": data.get("circumstances"),
            "physical_description": data.get("physical_description"),
            "clothing_description": data.get("clothing_description"),
            "case_emergency_contacts": data.get("emergency_contacts") or {},
            "priority_level": data.get("priority_level") or "medium",
            "efir_generated": False,
        }
        record["blockchain_hash"] = generate_integrity_hash({
            "tourist_id": tourist_id,
            "timestamp": now.isoformat(),
            "type": "missing_person",
        })
        record["created_at"] = firestore.SERVER_TIMESTAMP
        record["updated_at"] = firestore.SERVER_TIMESTAMP

        ref = self.db.collection("sos_alerts").document()
        ref.set(record)
        logger.warning(f"Missing person case opened: {case_number(ref.id)} for tourist {tourist_id}")
        return self._to_case(doc_to_dict(ref.get()))

    def _get_case_alert(self, case_id: str) -> Dict:
        alert = doc_to_dict(self.db.collection("sos_alerts").document(case_id).get())
        if alert is None or alert.get("alert_type") != MISSING_PERSON_ALERT_TYPE:
            raise LookupError(f"Missing person case not found: {case_id}")
        return alert

    def generate_efir(self, case_id: str) -> Dict:
        alert = self._get_case_alert(case_id)
        now = utcnow()
        efir_number = f"EFIR-{int(now.timestamp() * 1000)}-{case_id[:8]}"

        efir = {
            "efir_number": efir_number,
            "case_details": {
                "case_number": case_number(case_id),
                "tourist_details": doc_to_dict(
                    self.db.collection("digital_tourist_ids").document(alert["tourist_id"]).get()
                ),
                "incident_details": {
                    "location": {
                        "latitude": alert.get("latitude"),
                        "longitude": alert.get("longitude"),
                        "address": alert.get("address"),
                    },
                    "timestamp": alert.get("created_at"),
                    "description": alert.get("message"),
                },
                "blockchain_hash": alert.get("blockchain_hash"),
            },
            "generated_at": now,
        }

        self.db.collection("sos_alerts").document(case_id).update({
            "message": f"{alert.get('message') or ''} | E-FIR Generated: {efir_number}",
            "efir_generated": True,
            "efir_number": efir_number,
            "updated_at": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"E-FIR generated: {efir_number}")
        return efir

    def add_case_update(self, case_id: str, update: Dict, updated_by_user_id: Optional[str] = None) -> Dict:
        self._get_case_alert(case_id)
        if not (update.get("title") or "").strip():
            raise ValueError("Update title is required")

        ref = self.db.collection("case_updates").document()
        ref.set({
            "missing_person_case_id": case_id,
            "updated_by_user_id": updated_by_user_id,
            "update_type": update.get("update_type"),
            "title": update["title"].strip(),
            "description": update.get("description") or "",
            "location": update.get("location"),
            "evidence_files": update.get("evidence_files") or [],
            "created_at": firestore.SERVER_TIMESTAMP,
        })
        if update.get("update_type") == "status_change" and update.get("new_status"):
            self.update_alert_status(case_id, update["new_status"])
        return doc_to_dict(ref.get())

    def get_case_updates(self, case_id: str) -> List[Dict]:
        try:
            query = where_filter(self.db.collection("case_updates"), "missing_person_case_id", "==", case_id)
            return sort_by_timestamp(docs_to_list(query.stream()), "created_at", descending=False)
        except Exception as e:
            logger.error(f"Error fetching case updates: {str(e)}")
            return []

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_dashboard_stats(self) -> Dict:
        stats = {
            "total_tourists": 0,
            "active_alerts": 0,
            "missing_persons": 0,
            "risk_zones": 0,
            "response_time_avg": 0,
            "recent_incidents": 0,
        }
        try:
            tourists = docs_to_list(self.db.collection("digital_tourist_ids").stream())
            alerts = docs_to_list(self.db.collection("sos_alerts").stream())
            fences = [f for f in docs_to_list(self.db.collection("geo_fences").stream()) if f.get("active", True)]
        except Exception as e:
            logger.error(f"Error fetching dashboard stats: {str(e)}")
            return stats

        since = utcnow() - timedelta(hours=24)
        response_times = [m for m in (response_minutes(a) for a in alerts) if m is not None]

        stats["total_tourists"] = sum(1 for t in tourists if t.get("status") == "active")
        stats["active_alerts"] = sum(1 for a in alerts if a.get("status") == "active")
        stats["missing_persons"] = sum(1 for a in alerts if a.get("alert_type") == MISSING_PERSON_ALERT_TYPE)
        stats["risk_zones"] = len(fences)
        stats["response_time_avg"] = round(sum(response_times) / len(response_times)) if response_times else 0
        stats["recent_incidents"] = sum(
            1 for a in alerts if (parse_timestamp(a.get("created_at")) or since) > since
        )
        return stats


# Singleton instance
_police_dashboard_service = None


def get_police_dashboard_service() -> PoliceDashboardService:
    """Get singleton police dashboard service instance."""
    global _police_dashboard_service
    if _police_dashboard_service is None:
        _police_dashboard_service = PoliceDashboardService()
    return _police_dashboard_service
