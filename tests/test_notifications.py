from __future__ import annotations

import asyncio

import requests

from app.services import notification_service
from app.services.notification_service import NotificationService


def test_bulk_notification_is_staff_only(client, tourist) -> None:
    payload = {"title": "Road closed", "message": "NH-13 closed after landslide"}
    assert client.post("/notifications/bulk", json=payload).status_code == 401
    assert client.post("/notifications/bulk", headers=tourist["headers"], json=payload).status_code == 403


def test_bulk_notification_sends_and_logs(client, authority) -> None:
    response = client.post("/notifications/bulk", headers=authority["headers"], json={
        "title": "Road closed",
        "message": "NH-13 closed after landslide",
        "severity": "high",
        "target_groups": ["police", "authorities"],
    })
    assert response.status_code == 200
    body = response.json()
    assert body["kind"] == "bulk"
    assert len(body["sent"]) == 2
    assert body["failed"] == []

    log = client.get("/notifications", headers=authority["headers"]).json()
    assert [n["title"] for n in log] == ["Road closed"]
    assert log[0]["severity"] == "high"


def test_bulk_notification_rejects_unknown_group(client, authority) -> None:
    response = client.post("/notifications/bulk", headers=authority["headers"], json={
        "title": "x", "message": "y", "target_groups": ["everyone"],
    })
    assert response.status_code == 400


def test_webhook_failure_is_recorded(monkeypatch) -> None:
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(notification_service.requests, "post", refuse)
    service = NotificationService()
    service.webhook_url = "http://hooks.invalid/notify"

    result = service.notify_authorities({
        "id": "alert-1",
        "type": "panic",
        "tourist_id": "t1",
        "location": {"latitude": 26.0, "longitude": 91.0},
    })
    assert result["sent"] == []
    assert len(result["failed"]) == len(notification_service.POLICE_STATIONS)
    assert result["id"]


def test_sos_webhook_delivery_runs_off_the_event_loop(client, tourist, monkeypatch) -> None:
    calls = []

    class Delivered:
        def raise_for_status(self) -> None:
            pass

    def record(url, json, timeout):
        try:
            asyncio.get_running_loop()
            calls.append("event-loop")
        except RuntimeError:
            calls.append("worker")
        return Delivered()

    monkeypatch.setattr(notification_service.requests, "post", record)
    monkeypatch.setattr(notification_service.get_notification_service(), "webhook_url", "http://hooks.invalid/notify")

    response = client.post("/sos", headers=tourist["headers"], json={
        "type": "panic",
        "location": {"latitude": 26.0, "longitude": 91.0},
        "tourist_id": tourist["digital_id"],
    })
    assert response.status_code == 201
    assert calls
    assert set(calls) == {"worker"}
