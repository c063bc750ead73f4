"""
Security utilities: password hashing, opaque tokens, record integrity hashes
and masking of identity numbers for display.
"""

import hashlib
import json
import logging
import secrets
from typing import Any, Dict, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from app.core.settings import settings

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Salted hash in werkzeug's "<method>$<salt>$<hash>" format."""
    return generate_password_hash(password, method=settings.PASSWORD_HASH_METHOD)


def verify_password(password: str, stored_hash: Optional[str]) -> bool:
    if not stored_hash:
        return False
    try:
        return check_password_hash(stored_hash, password)
    except ValueError:
        logger.warning("Rejected password check against an unreadable hash")
        return False



def generate_token(nbytes: int = 32) -> str:
    """Opaque URL-safe token for sessions, email verification and password reset."""
    return secrets.token_urlsafe(nbytes)


def hash_token(token: str) -> str:
    """Tokens are stored hashed so a leaked collection does not leak sessions."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _json_default(value: Any) -> str:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def generate_integrity_hash(data: Dict[str, Any]) -> str:
    """
    Deterministic SHA-256 over the canonical JSON form of a record.

    This is the tamper-evidence ("blockchain") hash stored on digital tourist
    IDs and SOS alerts. Recomputing it over the same fields must give the same
    value, so keys are sorted and datetimes rendered as ISO strings.
    """
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=_json_default)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def mask_aadhaar(aadhaar_number: Optional[str]) -> Optional[str]:
    """
    Mask an Aadhaar number for display: 123412341234 → XXXX-XXXX-1234.
    """
    if not aadhaar_number or not aadhaar_number.strip():
        return None

    digits = "".join(ch for ch in aadhaar_number if ch.isdigit())
    if len(digits) < 4:
        return "XXXX"
    return f"XXXX-XXXX-{digits[-4:]}"
