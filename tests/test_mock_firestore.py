from __future__ import annotations

from datetime import datetime

import pytest
from firebase_admin import firestore

from app.config.mock_firestore import DESCENDING, MockFirestore


@pytest.fixture
def store() -> MockFirestore:
    store = MockFirestore()
    alerts = store.collection("alerts")
    for i, (kind, priority) in enumerate([("panic", 3), ("medical", 1), ("panic", 2), ("general", None)]):
        alerts.document(f"a{i}").set({"type": kind, "priority": priority, "tags": [kind, "sos"]})
    return store


def test_where_filters(store) -> None:
    alerts = store.collection("alerts")
    assert {d.id for d in alerts.where("type", "==", "panic").stream()} == {"a0", "a2"}
    assert {d.id for d in alerts.where("type", "in", ["medical", "general"]).stream()} == {"a1", "a3"}
    assert {d.id for d in alerts.where("priority", ">=", 2).stream()} == {"a0", "a2"}
    assert {d.id for d in alerts.where("tags", "array_contains", "medical").stream()} == {"a1"}
    with pytest.raises(ValueError):
        list(alerts.where("type", "~", "x").stream())


def test_order_limit_offset(store) -> None:
    query = store.collection("alerts").where("priority", ">", 0).order_by("priority", direction=DESCENDING)
    assert [d.id for d in query.stream()] == ["a0", "a2", "a1"]
    assert [d.id for d in query.offset(1).limit(1).stream()] == ["a2"]


def test_update_requires_existing_document(store) -> None:
    ref = store.collection("alerts").document("a0")
    ref.update({"status": "resolved"})
    assert ref.get().to_dict()["status"] == "resolved"

    with pytest.raises(LookupError):
        store.collection("alerts").document("missing").update({"status": "resolved"})


def test_merge_set_and_server_timestamp(store) -> None:
    ref = store.collection("alerts").document("a1")
    ref.set({"notes": "on scene", "updated_at": firestore.SERVER_TIMESTAMP}, merge=True)
    data = ref.get().to_dict()
    assert data["type"] == "medical"
    assert isinstance(data["updated_at"], datetime)
    assert data["updated_at"].tzinfo is not None


def test_snapshots_are_copies(store) -> None:
    snapshot = store.collection("alerts").document("a0").get()
    snapshot.to_dict()["tags"].append("changed")
    assert store.collection("alerts").document("a0").get().to_dict()["tags"] == ["panic", "sos"]
    assert snapshot.reference.id == "a0"


def test_persists_to_json_file(tmp_path) -> None:
    path = str(tmp_path / "mock_db.json")
    first = MockFirestore(path)
    _, ref = first.collection("users").add({"email": "a@example.com", "created_at": firestore.SERVER_TIMESTAMP})

    reloaded = MockFirestore(path)
    data = reloaded.collection("users").document(ref.id).get().to_dict()
    assert data["email"] == "a@example.com"
    assert isinstance(data["created_at"], datetime)
    assert [c.id for c in reloaded.collections()] == ["users"]


def test_reset_clears_everything(store) -> None:
    store.reset()
    assert store.collections() == []
