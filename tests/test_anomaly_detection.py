from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.models.anomaly import RiskFactors
from app.services.anomaly_detection_service import (
    calculate_anomaly_score,
    detect_prolonged_inactivity,
    detect_risk_zone_entry,
    detect_route_deviation,
    detect_silent_distress,
    detect_sudden_drop_off,
    get_severity_level,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def fix(lat: float, lng: float, minutes: float = 0, **extra) -> dict:
    return {"latitude": lat, "longitude": lng, "timestamp": T0 + timedelta(minutes=minutes), **extra}


def test_neutral_factors_score_zero() -> None:
    assert calculate_anomaly_score(RiskFactors()) == 0


def test_score_adds_band_points() -> None:
    factors = RiskFactors(distance_km=60, time_gap_minutes=10, speed_kmh=360)
    assert calculate_anomaly_score(factors) == 30 + 3 + 15
    assert get_severity_level(calculate_anomaly_score(factors)) == "medium"


def test_score_device_and_network_points() -> None:
    assert calculate_anomaly_score(RiskFactors(battery_level=15)) == 10
    assert calculate_anomaly_score(RiskFactors(battery_level=25)) == 5
    assert calculate_anomaly_score(RiskFactors(network_type="none")) == 10
    assert calculate_anomaly_score(RiskFactors(network_type="2G")) == 10
    assert calculate_anomaly_score(RiskFactors(network_type="3g")) == 5
    assert calculate_anomaly_score(RiskFactors(network_type="4g")) == 0


def test_score_proximity_deviation_and_inactivity() -> None:
    assert calculate_anomaly_score(RiskFactors(risk_zone_proximity=50)) == 20
    assert calculate_anomaly_score(RiskFactors(risk_zone_proximity=1500)) == 5
    assert calculate_anomaly_score(RiskFactors(route_deviation_meters=2500)) == 10
    assert calculate_anomaly_score(RiskFactors(inactivity_minutes=90)) == 15


def test_score_is_capped_at_100() -> None:
    factors = RiskFactors(
        distance_km=100,
        time_gap_minutes=120,
        speed_kmh=300,
        battery_level=5,
        network_type="none",
        risk_zone_proximity=10,
        route_deviation_meters=9000,
        inactivity_minutes=200,
    )
    assert calculate_anomaly_score(factors) == 100
    assert get_severity_level(100) == "critical"


@pytest.mark.parametrize(
    "score,level",
    [(0, "low"), (39, "low"), (40, "medium"), (59, "medium"), (60, "high"), (79, "high"), (80, "critical")],
)
def test_severity_levels(score, level) -> None:
    assert get_severity_level(score) == level


def test_sudden_drop_off_detects_impossible_jump() -> None:
    previous = fix(26.0, 91.0)
    current = fix(26.54, 91.0, minutes=10)

    result = detect_sudden_drop_off(current, previous)

    assert result["detected"] is True
    assert result["anomaly_type"] == "sudden_drop_off"
    assert result["details"]["distance_km"] == pytest.approx(60, rel=0.02)
    assert result["details"]["speed_kmh"] > 200
    assert result["severity_score"] == 48
    assert result["severity_level"] == "medium"
    assert result["recommendations"]


def test_sudden_drop_off_ignores_normal_movement() -> None:
    result = detect_sudden_drop_off(fix(26.01, 91.0, minutes=10), fix(26.0, 91.0))
    assert result["detected"] is False


def test_sudden_drop_off_needs_previous_fix() -> None:
    result = detect_sudden_drop_off(fix(26.0, 91.0), None)
    assert result == {
        "detected": False,
        "anomaly_type": "sudden_drop_off",
        "severity_score": 0,
        "severity_level": "low",
        "details": {},
        "recommendations": [],
    }


def test_prolonged_inactivity_after_thirty_minutes() -> None:
    result = detect_prolonged_inactivity(fix(26.0, 91.0, minutes=45), fix(26.0, 91.0))
    assert result["detected"] is True
    assert result["details"]["inactivity_minutes"] == pytest.approx(45)
    assert result["severity_score"] == 15 + 10

    quiet = detect_prolonged_inactivity(fix(26.0, 91.0, minutes=20), fix(26.0, 91.0))
    assert quiet["detected"] is False


def test_prolonged_inactivity_counts_device_state() -> None:
    current = fix(26.0, 91.0, minutes=45, battery_level=10, network_type="2g")
    result = detect_prolonged_inactivity(current, fix(26.0, 91.0))
    assert result["severity_score"] == 45
    assert result["severity_level"] == "medium"


def test_route_deviation_over_two_km() -> None:
    route = {"planned_waypoints": [{"lat": 26.0, "lng": 91.0, "name": "Start"}, {"lat": 26.2, "lng": 91.0}]}

    far = detect_route_deviation(fix(25.97, 91.0), route)
    assert far["detected"] is True
    assert far["details"]["nearest_waypoint"]["name"] == "Start"
    assert far["details"]["deviation_meters"] == pytest.approx(3336, rel=0.01)

    near = detect_route_deviation(fix(25.99, 91.0), route)
    assert near["detected"] is False


def test_route_deviation_without_route() -> None:
    assert detect_route_deviation(fix(26.0, 91.0), None)["detected"] is False
    assert detect_route_deviation(fix(26.0, 91.0), {"planned_waypoints": []})["detected"] is False


def test_silent_distress_needs_two_factors() -> None:
    inactivity = detect_prolonged_inactivity(fix(26.0, 91.0, minutes=45), fix(26.0, 91.0))

    distressed = detect_silent_distress(fix(26.0, 91.0, minutes=45, battery_level=10), inactivity, [])
    assert distressed["detected"] is True
    assert distressed["details"]["distress_score"] == 2
    assert distressed["details"]["distress_factors"]["low_battery"] is True
    assert distressed["details"]["risk_zone_proximity_km"] == 10

    calm = detect_silent_distress(fix(26.0, 91.0, battery_level=10), {"detected": False}, [])
    assert calm["detected"] is False
    assert calm["details"]["distress_score"] == 1


def test_silent_distress_counts_nearby_zone_and_speed() -> None:
    zone = {"id": "z1", "name": "Landslide Belt", "latitude": 26.001, "longitude": 91.0}
    result = detect_silent_distress(fix(26.0, 91.0, speed_kmh=180), {"detected": False}, [zone])
    assert result["details"]["distress_factors"]["in_risk_zone"] is True
    assert result["details"]["distress_factors"]["unusual_speed"] is True
    assert result["detected"] is True


def test_risk_zone_entry_within_one_km_of_centre() -> None:
    zone = {
        "id": "z1",
        "name": "Border Area",
        "type": "danger",
        "coordinates": [
            {"lat": 25.995, "lng": 90.995},
            {"lat": 25.995, "lng": 91.005},
            {"lat": 26.005, "lng": 91.005},
            {"lat": 26.005, "lng": 90.995},
        ],
    }
    result = detect_risk_zone_entry(fix(26.0, 91.001), [zone])
    assert result["detected"] is True
    assert result["details"]["risk_zone"]["name"] == "Border Area"
    assert result["details"]["risk_zone"]["risk_level"] == "danger"
    assert result["severity_score"] == 20

    outside = detect_risk_zone_entry(fix(26.1, 91.0), [zone])
    assert outside["detected"] is False
    assert detect_risk_zone_entry(fix(26.0, 91.0), [])["detected"] is False
