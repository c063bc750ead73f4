"""
Route Service - planned trip routes used for deviation checks.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.utils.firestore_helpers import where_filter, doc_to_dict, docs_to_list, sort_by_timestamp
from app.utils.geo import nearest_waypoint, validate_coordinates
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class RouteService:
    """
    A tourist has at most one active route. Creating a new one marks the
    previous active route as "replaced".
    """

    def __init__(self):
        self.db = get_db()

    def create_route(self, tourist_id: str, planned_waypoints: List[Dict]) -> Dict:
        if not tourist_id or not tourist_id.strip():
            raise ValueError("Tourist ID is required")
        if not planned_waypoints:
            raise ValueError("At least one waypoint is required")

        waypoints = []
        for index, waypoint in enumerate(planned_waypoints):
            if not validate_coordinates(waypoint.get("lat"), waypoint.get("lng")):
                raise ValueError(f"Invalid coordinates for waypoint {index}")
            waypoints.append({
                "lat": waypoint["lat"],
                "lng": waypoint["lng"],
                "name": waypoint.get("name") or f"Waypoint {index + 1}",
            })

        previous = self.get_active_route(tourist_id)
        if previous:
            self.db.collection("routes").document(previous["id"]).update({
                "status": "replaced",
                "updated_at": firestore.SERVER_TIMESTAMP,
            })
            logger.info(f"Route {previous['id']} replaced for tourist {tourist_id}")

        ref = self.db.collection("routes").document()
        ref.set({
            "tourist_id": tourist_id,
            "planned_waypoints": waypoints,
            "status": "active",
            "created_at": firestore.SERVER_TIMESTAMP,
            "updated_at": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Route created: {ref.id} ({len(waypoints)} waypoints)")
        return doc_to_dict(ref.get())

    def get_active_route(self, tourist_id: str) -> Optional[Dict]:
        query = where_filter(self.db.collection("routes"), "tourist_id", "==", tourist_id)
        routes = [r for r in docs_to_list(query.stream()) if r.get("status") == "active"]
        routes = sort_by_timestamp(routes, "created_at")
        return routes[0] if routes else None

    def get_route(self, route_id: str) -> Dict:
        route = doc_to_dict(self.db.collection("routes").document(route_id).get())
        if route is None:
            raise LookupError(f"Route not found: {route_id}")
        return route

    def complete_route(self, route_id: str) -> Dict:
        ref = self.db.collection("routes").document(route_id)
        if not ref.get().exists:
            raise LookupError(f"Route not found: {route_id}")
        ref.update({"status": "completed", "updated_at": firestore.SERVER_TIMESTAMP})
        return doc_to_dict(ref.get())

    def get_route_progress(self, tourist_id: str) -> Dict:
        route = self.get_active_route(tourist_id)
        if route is None:
            raise LookupError(f"No active route for tourist {tourist_id}")

        query = where_filter(self.db.collection("tourist_locations"), "tourist_id", "==", tourist_id)
        locations = sort_by_timestamp(docs_to_list(query.stream()), "timestamp")
        if not locations:
            return {"route_id": route["id"], "location": None, "nearest_waypoint": None,
                    "nearest_waypoint_index": None, "deviation_meters": None}

        latest = locations[0]
        index, distance_km = nearest_waypoint(latest["latitude"], latest["longitude"], route["planned_waypoints"])
        return {
            "route_id": route["id"],
            "location": {"lat": latest["latitude"], "lng": latest["longitude"]},
            "nearest_waypoint": route["planned_waypoints"][index],
            "nearest_waypoint_index": index,
            "deviation_meters": round(distance_km * 1000, 1),
        }


# Singleton instance
_route_service = None


def get_route_service() -> RouteService:
    """Get singleton route service instance."""
    global _route_service
    if _route_service is None:
        _route_service = RouteService()
    return _route_service
