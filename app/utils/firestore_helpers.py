"""
Firestore query and document helpers shared by the services.

NOTE: For firebase_admin SDK, we use positional arguments to where(), which
still work. The deprecation warning is just a warning.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "tourist_id", "==", tourist_id)
        query = where_filter(query, "status", "==", "active")
    """
    return query.where(field_path, op_string, value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse various timestamp formats to timezone-aware datetime (UTC).

    All datetimes must be timezone-aware to prevent comparison bugs.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    # Firestore Timestamp / DatetimeWithNanoseconds interfaces
    if hasattr(value, "to_datetime"):
        return parse_timestamp(value.to_datetime())
    if hasattr(value, "timestamp"):
        try:
            return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
        except (TypeError, ValueError, OSError):
            return None
    return None


def to_iso(value: Any) -> Optional[str]:
    dt = parse_timestamp(value)
    return dt.isoformat() if dt else None


def doc_to_dict(doc) -> Optional[Dict]:
    """Snapshot → dict with the document id under "id". None if missing."""
    if doc is None or not doc.exists:
        return None
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


def docs_to_list(docs: Iterable) -> List[Dict]:
    return [d for d in (doc_to_dict(doc) for doc in docs) if d is not None]


def sort_by_timestamp(items: List[Dict], field: str, descending: bool = True) -> List[Dict]:
    """Sort in Python so no composite Firestore index is required."""
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(
        items,
        key=lambda item: parse_timestamp(item.get(field)) or epoch,
        reverse=descending,
    )
