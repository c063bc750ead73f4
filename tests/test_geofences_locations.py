from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.services.geo_service import get_geo_service

DANGER_ZONE = {
    "name": "Flood Plain",
    "type": "danger",
    "description": "Flash floods during monsoon",
    "coordinates": [
        {"lat": 26.0, "lng": 91.0},
        {"lat": 26.0, "lng": 91.01},
        {"lat": 26.01, "lng": 91.01},
        {"lat": 26.01, "lng": 91.0},
    ],
}

RESTRICTED_ZONE = {
    "name": "Army Cantonment",
    "type": "restricted",
    "coordinates": {
        "type": "Polygon",
        "coordinates": [[[91.1, 26.1], [91.11, 26.1], [91.11, 26.11], [91.1, 26.11], [91.1, 26.1]]],
    },
}

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def post_location(client, tourist, lat, lng, minutes=0, **extra):
    payload = {
        "tourist_id": tourist["digital_id"],
        "latitude": lat,
        "longitude": lng,
        "timestamp": (T0 + timedelta(minutes=minutes)).isoformat(),
        **extra,
    }
    return client.post("/map/locations", headers=tourist["headers"], json=payload)


def test_geofence_crud(client, authority) -> None:
    created = client.post("/map/geofences", headers=authority["headers"], json=DANGER_ZONE)
    assert created.status_code == 201
    fence = created.json()
    assert fence["active"] is True
    assert fence["created_by"] == authority["user"]["id"]

    assert [f["id"] for f in client.get("/map/geofences").json()] == [fence["id"]]

    updated = client.patch(
        f"/map/geofences/{fence['id']}",
        headers=authority["headers"],
        json={"name": "Flood Plain North", "risk_level": "high"},
    )
    assert updated.json()["name"] == "Flood Plain North"
    assert updated.json()["risk_level"] == "high"

    assert client.delete(f"/map/geofences/{fence['id']}", headers=authority["headers"]).status_code == 200
    assert client.get("/map/geofences").json() == []
    # Soft delete keeps the record
    assert client.get(f"/map/geofences/{fence['id']}").json()["active"] is False


def test_geofence_validation(client, authority, tourist) -> None:
    bad = dict(DANGER_ZONE, coordinates=DANGER_ZONE["coordinates"][:2])
    assert client.post("/map/geofences", headers=authority["headers"], json=bad).status_code == 400
    assert client.post("/map/geofences", headers=tourist["headers"], json=DANGER_ZONE).status_code == 403
    assert client.get("/map/geofences/nope").status_code == 404

    assert client.post("/map/geofences/validate", json=RESTRICTED_ZONE["coordinates"]).json() == {"valid": True}
    assert client.post("/map/geofences/validate", json={"type": "Polygon", "coordinates": []}).json() == {"valid": False}


def test_point_check_and_escalation(client, authority) -> None:
    client.post("/map/geofences", headers=authority["headers"], json=DANGER_ZONE)
    client.post("/map/geofences", headers=authority["headers"], json=RESTRICTED_ZONE)

    danger = client.post("/map/geofences/check", json={"latitude": 26.005, "longitude": 91.005}).json()
    assert [f["name"] for f in danger["inside"]] == ["Flood Plain"]
    assert danger["escalation"] == "ranger"

    restricted = client.post("/map/geofences/check", json={"latitude": 26.105, "longitude": 91.105}).json()
    assert restricted["escalation"] == "police"

    outside = client.post("/map/geofences/check", json={"latitude": 27.0, "longitude": 92.0}).json()
    assert outside == {"inside": [], "escalation": "police"}


def test_location_update_raises_danger_violation(client, authority, tourist) -> None:
    client.post("/map/geofences", headers=authority["headers"], json=DANGER_ZONE)

    response = post_location(client, tourist, 26.005, 91.005)
    assert response.status_code == 201
    body = response.json()
    assert body["location"]["tourist_id"] == tourist["digital_id"]
    assert [a["alert_type"] for a in body["geofence_alerts"]] == ["violation"]
    assert body["geofence_alerts"][0]["geofence_name"] == "Flood Plain"

    # Danger zone centre is within a kilometre
    assert "risk_zone_entry" in [a["anomaly_type"] for a in body["anomalies"]]

    alerts = client.get("/map/geofences/alerts", headers=tourist["headers"]).json()
    assert len(alerts) == 1
    assert alerts[0]["geofence_name"] == "Flood Plain"


def test_restricted_zone_entry_and_exit(client, authority, tourist) -> None:
    client.post("/map/geofences", headers=authority["headers"], json=RESTRICTED_ZONE)

    first = post_location(client, tourist, 26.09, 91.105).json()
    assert first["geofence_alerts"] == []

    entered = post_location(client, tourist, 26.105, 91.105, minutes=5).json()
    assert [a["alert_type"] for a in entered["geofence_alerts"]] == ["entry"]

    left = post_location(client, tourist, 26.12, 91.105, minutes=10).json()
    assert [a["alert_type"] for a in left["geofence_alerts"]] == ["exit"]


def test_location_update_detects_sudden_drop_off(client, tourist, authority, db) -> None:
    post_location(client, tourist, 26.0, 91.0)
    body = post_location(client, tourist, 26.54, 91.0, minutes=10).json()

    detected = {a["anomaly_type"]: a for a in body["anomalies"]}
    assert "sudden_drop_off" in detected
    assert detected["sudden_drop_off"]["id"]

    stored = client.get(
        "/anomalies", headers=authority["headers"], params={"tourist_id": tourist["digital_id"]}
    ).json()
    assert "sudden_drop_off" in [a["anomaly_type"] for a in stored]

    alert_types = [doc.to_dict()["alert_type"] for doc in db.collection("sos_alerts").stream()]
    assert "anomaly_sudden_drop_off" in alert_types

    anomaly_id = detected["sudden_drop_off"]["id"]
    resolved = client.post(f"/anomalies/{anomaly_id}/resolve", headers=authority["headers"])
    assert resolved.json()["status"] == "resolved"


def test_route_deviation_against_active_route(client, tourist) -> None:
    route = client.post("/routes", headers=tourist["headers"], json={
        "tourist_id": tourist["digital_id"],
        "planned_waypoints": [{"lat": 26.0, "lng": 91.0, "name": "Hotel"}, {"lat": 26.05, "lng": 91.0}],
    })
    assert route.status_code == 201

    body = post_location(client, tourist, 25.97, 91.0).json()
    assert "route_deviation" in [a["anomaly_type"] for a in body["anomalies"]]

    progress = client.get(f"/routes/progress/{tourist['digital_id']}", headers=tourist["headers"]).json()
    assert progress["nearest_waypoint"]["name"] == "Hotel"
    assert 3000 < progress["deviation_meters"] < 3500


def test_location_rejects_out_of_range_coordinates(client, tourist) -> None:
    response = post_location(client, tourist, 95.0, 91.0)
    assert response.status_code == 400


def test_latest_location(client, tourist) -> None:
    assert client.get(f"/map/locations/{tourist['digital_id']}", headers=tourist["headers"]).status_code == 404
    post_location(client, tourist, 26.0, 91.0)
    post_location(client, tourist, 26.001, 91.0, minutes=5)
    latest = client.get(f"/map/locations/{tourist['digital_id']}", headers=tourist["headers"]).json()
    assert latest["latitude"] == 26.001


def test_safety_score_baseline_and_risk_area(client, authority) -> None:
    baseline = client.get("/map/safety-score", params={"lat": 26.0, "lng": 91.0}).json()
    assert baseline["score"] == 88
    assert baseline["factors"] == {"crime": 90, "traffic": 90, "crowding": 85, "infrastructure": 85}

    response = client.post("/map/risk-areas", headers=authority["headers"], json={
        "name": "Night Market",
        "center": {"latitude": 26.0, "longitude": 91.0},
        "radius": 400,
        "risk_level": "high",
        "description": "Pickpocketing reported",
        "active_incidents": 4,
    })
    assert response.status_code == 201

    scored = client.get("/map/safety-score", params={"lat": 26.0, "lng": 91.0}).json()
    assert scored["factors"] == {"crime": 78, "traffic": 70, "crowding": 75, "infrastructure": 85}
    assert scored["score"] == 77
    assert "Night Market: Pickpocketing reported" in scored["recommendations"]


def test_seed_demo_data_only_fills_empty_store() -> None:
    geo = get_geo_service()
    assert geo.seed_demo_data() == {"geofences": 3, "risk_areas": 2}
    assert geo.seed_demo_data() == {"geofences": 0, "risk_areas": 0}
    assert len(geo.get_geofences()) == 3
    assert geo.get_risk_areas()[0]["risk_level"] == "high"


class UnavailableStore:
    def collection(self, name):
        raise RuntimeError("firestore unavailable")


def test_geofences_fall_back_to_mock_fences(monkeypatch) -> None:
    geo = get_geo_service()
    monkeypatch.setattr(geo, "db", UnavailableStore())
    fences = geo.get_geofences()
    assert [f["type"] for f in fences] == ["safe", "restricted", "danger"]
    assert geo.get_escalation_type(fences, 26.0, 91.0) == "police"


def test_geofence_cache_is_invalidated_by_writes(db) -> None:
    geo = get_geo_service()
    fence = geo.create_geofence(DANGER_ZONE)
    assert [f["name"] for f in geo.get_geofences()] == ["Flood Plain"]

    # Writes that bypass the service are not seen until the cache is dropped
    db.collection("geo_fences").document("direct").set(dict(DANGER_ZONE, name="Direct", active=True))
    assert [f["name"] for f in geo.get_geofences()] == ["Flood Plain"]

    geo.update_geofence(fence["id"], {"name": "Flood Plain North"})
    assert {f["name"] for f in geo.get_geofences()} == {"Flood Plain North", "Direct"}

    geo.delete_geofence(fence["id"])
    assert [f["name"] for f in geo.get_geofences()] == ["Direct"]


def test_cached_geofences_are_copies() -> None:
    geo = get_geo_service()
    geo.create_geofence(DANGER_ZONE)
    fences = geo.get_geofences()
    fences[0]["name"] = "Changed"
    fences.clear()
    assert [f["name"] for f in geo.get_geofences()] == ["Flood Plain"]
