from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.services.police_dashboard_service import case_number, cluster_locations, response_minutes

NOW = datetime.now(timezone.utc)


def loc(lat: float, lng: float, hour_offset: int = 0) -> dict:
    return {"latitude": lat, "longitude": lng, "timestamp": NOW - timedelta(hours=hour_offset)}


def missing_person_payload(tourist_id: str) -> dict:
    return {
        "tourist_id": tourist_id,
        "last_known_location": {"lat": 27.58, "lng": 91.86, "address": "Sela Pass"},
        "description": "Did not return from trek",
        "physical_description": "Tall, red jacket",
        "priority_level": "high",
    }


def test_police_endpoints_require_staff(client, tourist) -> None:
    assert client.get("/police/stats").status_code == 401
    assert client.get("/police/stats", headers=tourist["headers"]).status_code == 403


def test_cluster_locations_groups_within_one_km() -> None:
    locations = [loc(26.0, 91.0), loc(26.005, 91.0), loc(26.5, 91.0)] + [loc(27.0, 92.0)] * 7
    clusters = cluster_locations(locations, "2024-03-01")

    assert [c["tourist_count"] for c in clusters] == [2, 1, 7]
    assert [c["risk_level"] for c in clusters] == ["low", "low", "medium"]
    assert clusters[0]["id"] == "cluster_26.0_91.0"
    assert clusters[0]["area_name"] == "Area 1"
    assert sum(clusters[2]["hourly_data"].values()) == 7


def test_cluster_locations_assigns_each_location_once() -> None:
    # B is within 1 km of A and of C, but A and C are further apart
    a, b, c = loc(26.0, 91.0), loc(26.006, 91.0), loc(26.012, 91.0)
    clusters = cluster_locations([a, b, c], "2024-03-01")
    assert sum(cl["tourist_count"] for cl in clusters) == 3
    assert [cl["tourist_count"] for cl in clusters] == [2, 1]


def test_response_minutes() -> None:
    created = NOW - timedelta(minutes=30)
    assert response_minutes({"status": "active", "created_at": created, "updated_at": NOW}) is None
    assert response_minutes({"status": "resolved", "created_at": created, "updated_at": NOW}) == 30
    assert case_number("abcdef1234567") == "MP-abcdef12"


def test_clusters_endpoint_uses_recent_locations(client, tourist, authority, db) -> None:
    db.collection("tourist_locations").document().set({"tourist_id": "a", **loc(26.0, 91.0)})
    db.collection("tourist_locations").document().set({"tourist_id": "b", **loc(26.001, 91.0)})
    db.collection("tourist_locations").document().set({"tourist_id": "c", **loc(26.0, 91.0, hour_offset=48)})

    clusters = client.get("/police/clusters", headers=authority["headers"]).json()
    assert [c["tourist_count"] for c in clusters] == [2]


def test_risk_zones(client, authority) -> None:
    response = client.post("/police/risk-zones", headers=authority["headers"], json={
        "name": "Landslide Corridor",
        "coordinates": [{"lat": 27.1, "lng": 92.1}, {"lat": 27.1, "lng": 92.2}, {"lat": 27.2, "lng": 92.15}],
        "risk_level": "high",
        "risk_factors": ["landslides", "no network"],
        "recommendations": "Travel only in daylight",
    })
    assert response.status_code == 201
    zone = response.json()
    assert zone["risk_level"] == "high"
    assert zone["risk_factors"] == ["landslides", "no network"]

    zones = client.get("/police/risk-zones", headers=authority["headers"]).json()
    assert [z["name"] for z in zones] == ["Landslide Corridor"]


def test_digital_id_records_search_and_enrichment(client, tourist, authority) -> None:
    client.post("/map/locations", headers=tourist["headers"], json={
        "tourist_id": tourist["digital_id"], "latitude": 26.0, "longitude": 91.0,
    })
    client.post("/sos", headers=tourist["headers"], json={
        "type": "panic",
        "location": {"latitude": 26.0, "longitude": 91.0},
        "tourist_id": tourist["digital_id"],
    })

    found = client.get("/police/digital-ids", headers=authority["headers"], params={"search": "asha"}).json()
    assert found["total"] == 1
    record = found["records"][0]
    assert record["current_location"]["lat"] == 26.0
    assert record["active_alerts"] == 1

    none = client.get("/police/digital-ids", headers=authority["headers"], params={"search": "zzz"}).json()
    assert none == {"records": [], "total": 0}

    assert client.get("/police/digital-ids/nope", headers=authority["headers"]).status_code == 404


def test_alert_history_filters_and_status_update(client, tourist, authority) -> None:
    for sos_type in ("panic", "medical"):
        client.post("/sos", headers=tourist["headers"], json={
            "type": sos_type,
            "location": {"latitude": 26.0, "longitude": 91.0},
            "tourist_id": tourist["digital_id"],
        })

    history = client.get("/police/alerts", headers=authority["headers"]).json()
    assert history["total"] == 2
    assert history["alerts"][0]["tourist_name"] == "Asha Das"
    assert history["alerts"][0]["response_time"] is None

    medical = client.get("/police/alerts", headers=authority["headers"], params={"alert_type": "medical"}).json()
    assert medical["total"] == 1
    alert_id = medical["alerts"][0]["id"]

    updated = client.patch(f"/police/alerts/{alert_id}/status", headers=authority["headers"], json={"status": "responded"})
    assert updated.status_code == 200
    assert updated.json()["status"] == "responded"

    responded = client.get("/police/alerts", headers=authority["headers"], params={"status": "responded"}).json()
    assert responded["alerts"][0]["response_time"] == 0

    missing = client.patch("/police/alerts/nope/status", headers=authority["headers"], json={"status": "resolved"})
    assert missing.status_code == 404


def test_missing_person_case_and_efir(client, tourist, authority) -> None:
    created = client.post(
        "/police/missing-persons", headers=authority["headers"], json=missing_person_payload(tourist["digital_id"])
    )
    assert created.status_code == 201
    case = created.json()
    assert case["case_number"] == f"MP-{case['id'][:8]}"
    assert case["tourist_name"] == "Asha Das"
    assert case["description"] == "Missing Person Case: Did not return from trek"
    assert case["last_known_location"]["address"] == "Sela Pass"
    assert case["efir_generated"] is False

    efir = client.post(f"/police/missing-persons/{case['id']}/efir", headers=authority["headers"]).json()
    assert efir["efir_number"].startswith("EFIR-")
    assert efir["efir_number"].endswith(case["id"][:8])
    assert efir["case_details"]["tourist_details"]["tourist_name"] == "Asha Das"

    cases = client.get("/police/missing-persons", headers=authority["headers"]).json()
    assert cases["total"] == 1
    assert cases["cases"][0]["efir_generated"] is True
    assert cases["cases"][0]["efir_number"] == efir["efir_number"]
    assert cases["cases"][0]["description"].endswith(f"| E-FIR Generated: {efir['efir_number']}")


def test_efir_for_regular_alert_is_404(client, tourist, authority) -> None:
    alert_id = client.post("/sos", headers=tourist["headers"], json={
        "type": "panic",
        "location": {"latitude": 26.0, "longitude": 91.0},
        "tourist_id": tourist["digital_id"],
    }).json()["id"]
    assert client.post(f"/police/missing-persons/{alert_id}/efir", headers=authority["headers"]).status_code == 404


def test_case_updates_and_status_change(client, tourist, authority) -> None:
    case_id = client.post(
        "/police/missing-persons", headers=authority["headers"], json=missing_person_payload(tourist["digital_id"])
    ).json()["id"]
    url = f"/police/missing-persons/{case_id}/updates"

    first = client.post(url, headers=authority["headers"], json={
        "update_type": "sighting",
        "title": "Seen near the lake",
        "location": {"lat": 27.5, "lng": 91.9, "address": "Sela Lake"},
    })
    assert first.status_code == 201
    assert first.json()["updated_by_user_id"] == authority["user"]["id"]

    client.post(url, headers=authority["headers"], json={
        "update_type": "status_change",
        "title": "Found safe",
        "new_status": "found",
    })

    updates = client.get(url, headers=authority["headers"]).json()
    assert [u["title"] for u in updates] == ["Seen near the lake", "Found safe"]

    cases = client.get("/police/missing-persons", headers=authority["headers"], params={"status": "found"}).json()
    assert [c["id"] for c in cases["cases"]] == [case_id]

    assert client.post("/police/missing-persons/nope/updates", headers=authority["headers"], json={
        "update_type": "sighting", "title": "x",
    }).status_code == 404


def test_dashboard_stats(client, tourist, authority) -> None:
    client.post("/police/missing-persons", headers=authority["headers"], json=missing_person_payload(tourist["digital_id"]))
    client.post("/sos", headers=tourist["headers"], json={
        "type": "panic",
        "location": {"latitude": 26.0, "longitude": 91.0},
        "tourist_id": tourist["digital_id"],
    })

    stats = client.get("/police/stats", headers=authority["headers"]).json()
    assert stats["total_tourists"] == 1
    assert stats["active_alerts"] == 2
    assert stats["missing_persons"] == 1
    assert stats["recent_incidents"] == 2
    assert stats["response_time_avg"] == 0
