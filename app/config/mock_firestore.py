"""
In-process stand-in for the Firestore client.

Used when USE_MOCK_DB=true (local development and tests). It implements the
subset of the client API the services rely on:

    db.collection(name).document(id).set/get/update/delete
    db.collection(name).add(data)
    db.collection(name).where(...).order_by(...).offset(n).limit(n).stream()
    db.collections()

SERVER_TIMESTAMP sentinels are resolved to timezone-aware UTC datetimes on
write. When a path is given, the data is persisted to a JSON file after every
write and reloaded on start.
"""

import copy
import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from firebase_admin import firestore

logger = logging.getLogger(__name__)

ASCENDING = "ASCENDING"
DESCENDING = "DESCENDING"


def _resolve_value(value: Any) -> Any:
    if value is firestore.SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    if isinstance(value, dict):
        return {k: _resolve_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_value(v) for v in value]
    return value


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"__datetime__": value.isoformat()}
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value.keys()) == {"__datetime__"}:
            return datetime.fromisoformat(value["__datetime__"])
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def _compare(left: Any, op: str, right: Any) -> bool:
    try:
        if op == "==":
            return left == right
        if op == "!=":
            return left is not None and left != right
        if op == "in":
            return left in right
        if op == "not-in":
            return left is not None and left not in right
        if op == "array_contains":
            return isinstance(left, list) and right in left
        if left is None:
            return False
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        if op == ">=":
            return left >= right
    except TypeError:
        return False
    raise ValueError(f"Unsupported query operator: {op}")


class MockDocumentSnapshot:
    def __init__(self, reference: "MockDocumentReference", data: Optional[Dict]):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict]:
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field: str) -> Any:
        return (self._data or {}).get(field)


class MockDocumentReference:
    def __init__(self, store: "MockFirestore", collection: str, doc_id: str):
        self._store = store
        self._collection = collection
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self._collection}/{self.id}"

    def get(self) -> MockDocumentSnapshot:
        with self._store._lock:
            data = self._store._data.get(self._collection, {}).get(self.id)
            return MockDocumentSnapshot(self, copy.deepcopy(data))

    def set(self, data: Dict, merge: bool = False) -> None:
        resolved = _resolve_value(copy.deepcopy(data))
        with self._store._lock:
            collection = self._store._data.setdefault(self._collection, {})
            if merge and self.id in collection:
                collection[self.id].update(resolved)
            else:
                collection[self.id] = resolved
        self._store._persist()

    def update(self, data: Dict) -> None:
        resolved = _resolve_value(copy.deepcopy(data))
        with self._store._lock:
            collection = self._store._data.get(self._collection, {})
            if self.id not in collection:
                raise LookupError(f"No document to update: {self.path}")
            collection[self.id].update(resolved)
        self._store._persist()

    def delete(self) -> None:
        with self._store._lock:
            self._store._data.get(self._collection, {}).pop(self.id, None)
        self._store._persist()


class MockQuery:
    def __init__(
        self,
        store: "MockFirestore",
        collection: str,
        filters: Optional[List[Tuple[str, str, Any]]] = None,
        orders: Optional[List[Tuple[str, str]]] = None,
        limit_count: Optional[int] = None,
        offset_count: int = 0,
    ):
        self._store = store
        self._collection = collection
        self._filters = filters or []
        self._orders = orders or []
        self._limit = limit_count
        self._offset = offset_count

    def _copy(self, **changes) -> "MockQuery":
        params = {
            "filters": list(self._filters),
            "orders": list(self._orders),
            "limit_count": self._limit,
            "offset_count": self._offset,
        }
        params.update(changes)
        return MockQuery(self._store, self._collection, **params)

    def where(self, field_path: str, op_string: str, value: Any) -> "MockQuery":
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def order_by(self, field_path: str, direction: str = ASCENDING) -> "MockQuery":
        return self._copy(orders=self._orders + [(field_path, direction)])

    def limit(self, count: int) -> "MockQuery":
        return self._copy(limit_count=count)

    def offset(self, count: int) -> "MockQuery":
        return self._copy(offset_count=count)

    def stream(self) -> Iterator[MockDocumentSnapshot]:
        with self._store._lock:
            items = [
                (doc_id, copy.deepcopy(data))
                for doc_id, data in self._store._data.get(self._collection, {}).items()
            ]

        for field, op, value in self._filters:
            items = [(doc_id, data) for doc_id, data in items if _compare(data.get(field), op, value)]

        # Stable sorts applied last-key-first give a multi-key ordering.
        for field, direction in reversed(self._orders):
            items = [(doc_id, data) for doc_id, data in items if field in data]
            items.sort(
                key=lambda item: (item[1].get(field) is not None, item[1].get(field)),
                reverse=(direction == DESCENDING),
            )

        items = items[self._offset:]
        if self._limit is not None:
            items = items[: self._limit]

        for doc_id, data in items:
            ref = MockDocumentReference(self._store, self._collection, doc_id)
            yield MockDocumentSnapshot(ref, data)

    def get(self) -> List[MockDocumentSnapshot]:
        return list(self.stream())


class MockCollectionReference(MockQuery):
    def __init__(self, store: "MockFirestore", name: str):
        super().__init__(store, name)
        self.id = name

    def document(self, doc_id: Optional[str] = None) -> MockDocumentReference:
        return MockDocumentReference(self._store, self._collection, doc_id or uuid.uuid4().hex[:20])

    def add(self, data: Dict) -> Tuple[datetime, MockDocumentReference]:
        ref = self.document()
        ref.set(data)
        return datetime.now(timezone.utc), ref


class MockFirestore:
    """Dictionary-backed document store: {collection: {doc_id: data}}."""

    def __init__(self, path: Optional[str] = None):
        self._path = path or None
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, Dict]] = {}
        self._load()

    def collection(self, name: str) -> MockCollectionReference:
        return MockCollectionReference(self, name)

    def collections(self) -> List[MockCollectionReference]:
        with self._lock:
            return [MockCollectionReference(self, name) for name in self._data]

    def reset(self) -> None:
        with self._lock:
            self._data = {}
        self._persist()

    def _load(self) -> None:
        if not self._path or not os.path.exists(self._path):
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                self._data = _decode(json.load(f))
            logger.info(f"Mock DB loaded from {self._path}")
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load mock DB from {self._path}: {e}. Starting empty.")
            self._data = {}

    def _persist(self) -> None:
        if not self._path:
            return
        with self._lock:
            snapshot = _encode(self._data)
        try:
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2)
        except OSError as e:
            logger.warning(f"Failed to persist mock DB to {self._path}: {e}")


_mock_db: Optional[MockFirestore] = None


def get_mock_db(path: Optional[str] = None) -> MockFirestore:
    global _mock_db
    if _mock_db is None:
        _mock_db = MockFirestore(path)
    return _mock_db
