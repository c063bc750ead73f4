from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.services.sos_risk_service import find_keywords, get_sos_risk_service, priority_for, risk_level_for, time_of_day
from app.services.sos_service import get_sos_service

# Inside the "Crowded Market Area" demo risk area
MARKET = {"latitude": 28.6139, "longitude": 77.2295, "address": "Connaught Place"}


def raise_sos(client, tourist, sos_type="panic", location=None):
    return client.post("/sos", headers=tourist["headers"], json={
        "type": sos_type,
        "location": location or MARKET,
        "message": "Followed by strangers",
        "tourist_id": tourist["digital_id"],
    })


def test_create_sos_alert(client, tourist, db) -> None:
    response = raise_sos(client, tourist)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "active"
    assert body["estimated_response_time"] == 5
    assert body["timestamp"]

    stored = db.collection("sos_alerts").document(body["id"]).get().to_dict()
    assert stored["tourist_id"] == tourist["digital_id"]
    assert len(stored["blockchain_hash"]) == 64

    kinds = {n["kind"] for n in (doc.to_dict() for doc in db.collection("notifications").stream())}
    assert kinds == {"notify-authorities", "notify-emergency-contacts"}


def test_response_time_depends_on_type_and_distance() -> None:
    service = get_sos_service()
    assert service.calculate_response_time(MARKET, "medical") == 5
    assert service.calculate_response_time(MARKET, "security") == 7
    assert service.calculate_response_time(MARKET, "general") == 10
    # Far from every risk area: travel time is capped at 10 minutes
    assert service.calculate_response_time({"latitude": 26.14, "longitude": 91.73}, "general") == 20


def test_sos_requires_valid_location(client, tourist) -> None:
    response = client.post("/sos", headers=tourist["headers"], json={
        "type": "panic",
        "location": {"latitude": 120, "longitude": 77.2},
        "tourist_id": tourist["digital_id"],
    })
    assert response.status_code == 422


def test_tourist_cannot_raise_sos_for_someone_else(client, tourist) -> None:
    response = client.post("/sos", headers=tourist["headers"], json={
        "type": "panic",
        "location": MARKET,
        "tourist_id": "someone-else",
    })
    assert response.status_code == 403


def test_sos_requires_login(client) -> None:
    response = client.post("/sos", json={"type": "panic", "location": MARKET, "tourist_id": "x"})
    assert response.status_code == 401


def test_alert_lifecycle(client, tourist, authority) -> None:
    alert_id = raise_sos(client, tourist).json()["id"]

    active = client.get("/sos/active", headers=authority["headers"]).json()
    assert [a["id"] for a in active] == [alert_id]

    assigned = client.post(f"/sos/{alert_id}/assign", headers=authority["headers"], json={"responder_id": "unit-7"})
    assert assigned.status_code == 200
    assert assigned.json()["status"] == "assigned"
    assert assigned.json()["assigned_responder"] == "unit-7"

    resolved = client.post(f"/sos/{alert_id}/resolve", headers=authority["headers"], json={"notes": "  Escorted to hotel "})
    assert resolved.json()["status"] == "resolved"
    assert resolved.json()["notes"] == "Escorted to hotel"

    assert client.get("/sos/active", headers=authority["headers"]).json() == []


def test_tourist_can_cancel_own_alert(client, tourist) -> None:
    alert_id = raise_sos(client, tourist).json()["id"]
    response = client.post(f"/sos/{alert_id}/cancel", headers=tourist["headers"])
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    history = client.get(f"/sos/history/{tourist['digital_id']}", headers=tourist["headers"]).json()
    assert history[0]["status"] == "cancelled"


def test_staff_only_endpoints(client, tourist) -> None:
    alert_id = raise_sos(client, tourist).json()["id"]
    assert client.get("/sos/active", headers=tourist["headers"]).status_code == 403
    response = client.post(f"/sos/{alert_id}/assign", headers=tourist["headers"], json={"responder_id": "x"})
    assert response.status_code == 403


def test_unknown_alert_is_404(client, authority) -> None:
    assert client.get("/sos/missing-id", headers=authority["headers"]).status_code == 404
    response = client.post("/sos/missing-id/resolve", headers=authority["headers"], json={})
    assert response.status_code == 404


def test_emergency_contacts_default_then_stored(client, tourist) -> None:
    url = f"/sos/contacts/{tourist['digital_id']}"
    defaults = client.get(url, headers=tourist["headers"]).json()
    assert any(c["number"] == "100" for c in defaults)

    added = client.post(url, headers=tourist["headers"], json={
        "name": "Ananya",
        "number": "+91-90000-00000",
        "type": "primary",
        "relationship": "sister",
    })
    assert added.status_code == 201

    contacts = client.get(url, headers=tourist["headers"]).json()
    assert [c["name"] for c in contacts] == ["Ananya"]


def test_enhanced_sos_prioritises_low_battery(client, tourist, authority) -> None:
    response = client.post("/sos/enhanced", headers=tourist["headers"], json={
        "type": "medical",
        "location": MARKET,
        "message": "Injured after a fall, need help",
        "tourist_id": tourist["digital_id"],
        "battery_level": 8,
        "network_strength": 10,
        "device_info": {"user_agent": "test", "is_online": True, "connection_type": "2g"},
    })
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["sos_id"]
    # No history: 15 for low battery plus 10 for weak network
    assert body["risk_score"] == 25
    assert body["priority"] == "LOW"
    assert body["suggested_escalation"] == "medical"

    profile = client.get(f"/sos/risk-profile/{tourist['digital_id']}", headers=authority["headers"])
    assert profile.status_code == 200

    analytics = client.get(f"/sos/analytics/{tourist['digital_id']}", headers=authority["headers"]).json()
    assert analytics["total_alerts"] == 1


def test_location_risk_scans_nearby_reports(client, tourist) -> None:
    quiet = client.get("/sos/location-risk", params={"lat": 28.6139, "lng": 77.2295}).json()
    assert quiet["risk_level"] == "LOW"
    assert quiet["is_risky"] is False

    client.post("/sos", headers=tourist["headers"], json={
        "type": "security",
        "location": MARKET,
        "message": "Theft in a dark and empty lane",
        "tourist_id": tourist["digital_id"],
    })
    risky = client.get("/sos/location-risk", params={"lat": 28.6139, "lng": 77.2295}).json()
    assert risky["risk_level"] == "HIGH"
    assert risky["warnings"]


def test_risk_helpers() -> None:
    assert time_of_day(3) == "night"
    assert time_of_day(23) == "night"
    assert time_of_day(9) == "morning"
    assert time_of_day(14) == "afternoon"
    assert time_of_day(19) == "evening"
    assert find_keywords("There was a THEFT near the isolated bridge") == ["isolated", "theft"]
    assert risk_level_for(34) == "LOW"
    assert risk_level_for(35) == "MEDIUM"
    assert priority_for(84) == "HIGH"
    assert priority_for(85) == "CRITICAL"


NOW = datetime(2026, 1, 10, 6, 30, tzinfo=timezone.utc)  # 12:00 IST


def seed_history(db, *created_at, tourist_id="t1"):
    for moment in created_at:
        db.collection("sos_alerts").document().set({
            "tourist_id": tourist_id,
            "alert_type": "panic",
            "status": "resolved",
            "created_at": moment,
        })


def test_time_of_day_uses_local_wall_clock(db) -> None:
    # 18:00 UTC is 23:30 in India
    seed_history(db, *(datetime(2026, 1, day, 18, 0, tzinfo=timezone.utc) for day in (1, 2, 3)))
    analytics = get_sos_risk_service().get_sos_analytics("t1", now=NOW)
    assert analytics["time_of_day"] == {"night": 3, "morning": 0, "afternoon": 0, "evening": 0}
    assert analytics["common_time_patterns"] == ["night"]


def test_risk_profile_without_factors(db) -> None:
    seed_history(db, NOW - timedelta(days=20), NOW - timedelta(days=21))
    profile = get_sos_risk_service().analyze_risk_profile("t1", now=NOW)
    assert profile["factors"] == []
    assert profile["risk_score"] == 10
    assert profile["risk_level"] == "LOW"


def test_risk_profile_base_score_is_capped(db) -> None:
    seed_history(db, *(NOW - timedelta(days=10 + i) for i in range(9)))
    profile = get_sos_risk_service().analyze_risk_profile("t1", now=NOW)
    assert profile["factors"] == []
    assert profile["risk_score"] == 40
    assert profile["risk_level"] == "MEDIUM"


def test_risk_profile_night_pattern(db) -> None:
    seed_history(db, *(datetime(2025, 12, day, 18, 0, tzinfo=timezone.utc) for day in (1, 2, 3)))
    profile = get_sos_risk_service().analyze_risk_profile("t1", now=NOW)
    assert [(f["type"], f["score"], f["weight"]) for f in profile["factors"]] == [("time_pattern", 70, 1.3)]
    # 15 base + 91 weighted, capped
    assert profile["risk_score"] == 100
    assert profile["risk_level"] == "CRITICAL"


def test_risk_profile_frequency_factors(db) -> None:
    seed_history(db, *(NOW - timedelta(days=day) for day in (2, 3, 4, 5, 6)))
    weekly = get_sos_risk_service().analyze_risk_profile("t1", now=NOW)
    assert [(f["type"], f["score"], f["weight"]) for f in weekly["factors"]] == [("frequency", 65, 1.2)]

    seed_history(db, *(NOW - timedelta(hours=hours) for hours in (1, 2, 3)), tourist_id="t2")
    daily = get_sos_risk_service().analyze_risk_profile("t2", now=NOW)
    assert [(f["type"], f["score"], f["weight"]) for f in daily["factors"]] == [("frequency", 85, 1.5)]
    assert daily["risk_score"] == 100


def test_enhanced_sos_boosts_repeat_alerts(db) -> None:
    now = datetime.now(timezone.utc)
    seed_history(db, *(now - timedelta(hours=hours) for hours in (1, 2, 3)))
    result = get_sos_risk_service().create_enhanced_sos({
        "type": "panic",
        "location": MARKET,
        "tourist_id": "t1",
    })
    assert result["success"] is True
    # Capped profile score plus the repeat-alert boost
    assert result["risk_score"] == 120
    assert result["priority"] == "CRITICAL"
    assert result["suggested_escalation"] == "local_police"


def test_enhanced_sos_weekly_frequency_is_not_boosted(db) -> None:
    now = datetime.now(timezone.utc)
    seed_history(db, *(now - timedelta(days=day) for day in (2, 3, 4, 5, 6)))
    result = get_sos_risk_service().create_enhanced_sos({
        "type": "general",
        "location": MARKET,
        "tourist_id": "t1",
    })
    assert result["risk_score"] == 100
    assert result["priority"] == "CRITICAL"


def test_closed_alert_cannot_be_cancelled(client, tourist, authority) -> None:
    alert_id = raise_sos(client, tourist).json()["id"]
    client.post(f"/sos/{alert_id}/resolve", headers=authority["headers"], json={})

    response = client.post(f"/sos/{alert_id}/cancel", headers=tourist["headers"])
    assert response.status_code == 409
    assert client.get(f"/sos/{alert_id}", headers=authority["headers"]).json()["status"] == "resolved"

    assigned_id = raise_sos(client, tourist).json()["id"]
    client.post(f"/sos/{assigned_id}/assign", headers=authority["headers"], json={"responder_id": "unit-7"})
    assert client.post(f"/sos/{assigned_id}/cancel", headers=tourist["headers"]).status_code == 200
    assert client.post(f"/sos/{assigned_id}/cancel", headers=tourist["headers"]).status_code == 409
