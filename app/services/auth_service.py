"""
Auth Service - email/password accounts, sessions and one-time tokens.

Sessions are opaque bearer tokens. Only their SHA-256 is stored (as the
session document id), together with an expiry. Email verification and
password reset use the same scheme in the "auth_tokens" collection.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.core.settings import settings
from app.services.tourist_service import AADHAAR_PATTERN, get_tourist_service
from app.utils.firestore_helpers import where_filter, doc_to_dict, docs_to_list, parse_timestamp, utcnow
from app.utils.security import generate_token, hash_password, hash_token, verify_password
from datetime import timedelta
from typing import Dict, Optional
import logging
import re

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ROLES = ("tourist", "authority", "admin")
SELF_SERVICE_ROLES = ("tourist", "admin")
MIN_REGISTRATION_PASSWORD = 6
MIN_RESET_PASSWORD = 8

ROLE_REDIRECTS = {
    "tourist": "/tourist/dashboard",
    "authority": "/authority/dashboard",
    "admin": "/admin/dashboard",
}

EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"


def get_redirect_url_for_role(role: Optional[str]) -> str:
    return ROLE_REDIRECTS.get(role, "/dashboard")


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _require_valid_email(email: str) -> None:
    if not email:
        raise ValueError("Email is required")
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")


def to_auth_user(user: Dict) -> Dict:
    return {
        "id": user["id"],
        "email": user.get("email"),
        "name": user.get("name") or "",
        "role": user.get("role", "tourist"),
        "is_verified": bool(user.get("is_verified")),
        "digital_id": user.get("digital_id"),
        "language": user.get("language") or settings.DEFAULT_LANGUAGE,
    }


class AuthService:
    """
    Service for registration, login and account recovery.
    """

    def __init__(self):
        self.db = get_db()

    # ------------------------------------------------------------------
    # Users and profiles
    # ------------------------------------------------------------------

    def _get_user_by_email(self, email: str) -> Optional[Dict]:
        query = where_filter(self.db.collection("users"), "email", "==", email).limit(1)
        users = docs_to_list(query.stream())
        return users[0] if users else None

    def get_user(self, user_id: str) -> Optional[Dict]:
        return doc_to_dict(self.db.collection("users").document(user_id).get())

    def get_user_profile(self, user_id: str) -> Optional[Dict]:
        if not user_id:
            raise ValueError("User ID is required")
        return doc_to_dict(self.db.collection("profiles").document(user_id).get())

    def _create_user(
        self,
        email: str,
        password: str,
        name: str,
        role: str,
        phone: Optional[str] = None,
        is_verified: bool = False,
        organization: Optional[str] = None,
        assigned_geo_fence_ids=None,
    ) -> Dict:
        if self._get_user_by_email(email):
            raise ValueError("Email is already registered")

        ref = self.db.collection("users").document()
        ref.set({
            "email": email,
            "password_hash": hash_password(password),
            "name": name,
            "role": role,
            "phone": phone,
            "is_verified": is_verified,
            "digital_id": None,
            "language": settings.DEFAULT_LANGUAGE,
            "created_at": firestore.SERVER_TIMESTAMP,
        })
        self.db.collection("profiles").document(ref.id).set({
            "user_id": ref.id,
            "full_name": name,
            "role": role,
            "phone_number": phone,
            "organization": organization,
            "assigned_geo_fence_ids": assigned_geo_fence_ids or [],
            "language": settings.DEFAULT_LANGUAGE,
            "created_at": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"User created: {ref.id} ({role})")
        return doc_to_dict(ref.get())

    # ------------------------------------------------------------------
    # One-time tokens
    # ------------------------------------------------------------------

    def _issue_token(self, user: Dict, purpose: str) -> str:
        token = generate_token()
        self.db.collection("auth_tokens").document(hash_token(token)).set({
            "user_id": user["id"],
            "email": user["email"],
            "purpose": purpose,
            "used": False,
            "expires_at": utcnow() + timedelta(minutes=settings.AUTH_TOKEN_TTL_MINUTES),
            "created_at": firestore.SERVER_TIMESTAMP,
        })
        return token

    def _consume_token(self, token: str, purpose: str) -> Dict:
        if not token or not token.strip():
            raise ValueError("Token is required")
        ref = self.db.collection("auth_tokens").document(hash_token(token.strip()))
        record = doc_to_dict(ref.get())
        if (
            record is None
            or record.get("purpose") != purpose
            or record.get("used")
            or (parse_timestamp(record.get("expires_at")) or utcnow()) <= utcnow()
        ):
            raise ValueError("Invalid or expired token")
        ref.update({"used": True, "used_at": firestore.SERVER_TIMESTAMP})
        return record

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        name: str,
        phone: Optional[str] = None,
        role: Optional[str] = None,
    ) -> Dict:
        """
        Register a tourist or admin account.

        Returns:
            {"user": AuthUser, "verification_token": str}

        Raises:
            ValueError: missing fields, short password, bad email, duplicate
                email or a role that cannot be self-assigned
        """
        email = _normalize_email(email)
        if not email:
            raise ValueError("Email is required")
        if not password:
            raise ValueError("Password is required")
        if not (name or "").strip():
            raise ValueError("Name is required")
        if len(password) < MIN_REGISTRATION_PASSWORD:
            raise ValueError(f"Password must be at least {MIN_REGISTRATION_PASSWORD} characters long")
        _require_valid_email(email)

        role = role or "tourist"
        if role not in SELF_SERVICE_ROLES:
            raise ValueError(f"Role '{role}' cannot be self-assigned")

        user = self._create_user(email, password, name.strip(), role, phone=phone)
        token = self._issue_token(user, "verify_email")
        return {"user": to_auth_user(user), "verification_token": token}

    def register_tourist(self, data: Dict) -> Dict:
        """Register a tourist account and issue its digital tourist ID."""
        aadhaar_number = re.sub(r"[\s-]", "", data.get("aadhaar_number") or "")
        if not AADHAAR_PATTERN.match(aadhaar_number):
            raise ValueError("Aadhaar number must be 12 digits")

        result = self.register(
            data.get("email"), data.get("password"), data.get("name"), data.get("phone"), "tourist"
        )
        user_id = result["user"]["id"]
        valid_from = utcnow()

        digital_id = get_tourist_service().create_digital_tourist_id({
            "tourist_name": data.get("name"),
            "aadhaar_number": aadhaar_number,
            "passport_number": data.get("passport_number"),
            "trip_itinerary": data.get("trip_itinerary") or "Tourist registration",
            "emergency_contacts": data.get("emergency_contacts") or [],
            "valid_from": valid_from,
            "valid_to": valid_from + timedelta(days=int(data.get("valid_days") or 30)),
            "user_id": user_id,
        })
        self.db.collection("users").document(user_id).update({"digital_id": digital_id["id"]})
        result["user"]["digital_id"] = digital_id["id"]
        logger.info(f"Tourist registered: {user_id} with digital ID {digital_id['id']}")
        return result

    def create_authority(self, data: Dict) -> Dict:
        """Admin-only: authority accounts are created pre-verified."""
        email = _normalize_email(data.get("email"))
        _require_valid_email(email)
        if len(data.get("password") or "") < MIN_RESET_PASSWORD:
            raise ValueError(f"Password must be at least {MIN_RESET_PASSWORD} characters long")
        if not (data.get("name") or "").strip():
            raise ValueError("Name is required")

        user = self._create_user(
            email,
            data["password"],
            data["name"].strip(),
            "authority",
            is_verified=True,
            organization=data.get("organization"),
            assigned_geo_fence_ids=data.get("assigned_geo_fence_ids"),
        )
        return to_auth_user(user)

    def login(self, email: str, password: str) -> Dict:
        """
        Returns:
            {"user": AuthUser, "token": str, "redirect_url": str}

        Raises:
            ValueError: missing fields or malformed email
            PermissionError: bad credentials or EMAIL_NOT_VERIFIED
        """
        email = _normalize_email(email)
        if not email:
            raise ValueError("Email is required")
        if not password:
            raise ValueError("Password is required")
        _require_valid_email(email)

        user = self._get_user_by_email(email)
        if not user or not verify_password(password, user.get("password_hash")):
            raise PermissionError("Invalid email or password")
        if settings.REQUIRE_EMAIL_VERIFICATION and not user.get("is_verified"):
            raise PermissionError(EMAIL_NOT_VERIFIED)

        token = self._create_session(user)
        self.db.collection("users").document(user["id"]).update({"last_login_at": firestore.SERVER_TIMESTAMP})
        logger.info(f"User logged in: {user['id']}")
        return {
            "user": to_auth_user(user),
            "token": token,
            "redirect_url": get_redirect_url_for_role(user.get("role")),
        }

    def _create_session(self, user: Dict) -> str:
        token = generate_token()
        self.db.collection("sessions").document(hash_token(token)).set({
            "user_id": user["id"],
            "expires_at": utcnow() + timedelta(hours=settings.SESSION_TTL_HOURS),
            "created_at": firestore.SERVER_TIMESTAMP,
        })
        return token

    def logout(self, token: str) -> None:
        if token:
            self.db.collection("sessions").document(hash_token(token)).delete()

    def get_current_user(self, token: Optional[str]) -> Optional[Dict]:
        """AuthUser for a session token, or None when unknown or expired."""
        if not token:
            return None
        try:
            ref = self.db.collection("sessions").document(hash_token(token))
            session = doc_to_dict(ref.get())
            if session is None:
                return None
            expires_at = parse_timestamp(session.get("expires_at"))
            if expires_at is None or expires_at <= utcnow():
                ref.delete()
                return None
            user = self.get_user(session["user_id"])
            return to_auth_user(user) if user else None
        except Exception as e:
            logger.error(f"Failed to resolve session: {str(e)}")
            return None

    # ------------------------------------------------------------------
    # Recovery and verification
    # ------------------------------------------------------------------

    def forgot_password(self, email: str) -> Optional[str]:
        """Issue a reset token. Unknown emails are a silent no-op (returns None)."""
        email = _normalize_email(email)
        _require_valid_email(email)
        user = self._get_user_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return None
        return self._issue_token(user, "reset_password")

    def reset_password(self, token: str, new_password: str) -> None:
        if not new_password:
            raise ValueError("New password is required")
        if len(new_password) < MIN_RESET_PASSWORD:
            raise ValueError(f"Password must be at least {MIN_RESET_PASSWORD} characters long")
        record = self._consume_token(token, "reset_password")
        self.db.collection("users").document(record["user_id"]).update({
            "password_hash": hash_password(new_password),
            "password_changed_at": firestore.SERVER_TIMESTAMP,
        })
        # Existing sessions stop working after a reset
        query = where_filter(self.db.collection("sessions"), "user_id", "==", record["user_id"])
        for doc in query.stream():
            doc.reference.delete()
        logger.info(f"Password reset for user {record['user_id']}")

    def resend_verification(self, email: str) -> Optional[str]:
        email = _normalize_email(email)
        _require_valid_email(email)
        user = self._get_user_by_email(email)
        if user is None or user.get("is_verified"):
            return None
        return self._issue_token(user, "verify_email")

    def verify_email(self, token: str) -> Dict:
        record = self._consume_token(token, "verify_email")
        ref = self.db.collection("users").document(record["user_id"])
        ref.update({"is_verified": True, "verified_at": firestore.SERVER_TIMESTAMP})
        logger.info(f"Email verified for user {record['user_id']}")
        return to_auth_user(doc_to_dict(ref.get()))

    def is_email_verified(self, email: str) -> bool:
        try:
            user = self._get_user_by_email(_normalize_email(email))
            return bool(user and user.get("is_verified"))
        except Exception as e:
            logger.error(f"Failed to check email verification: {str(e)}")
            return False

    def verify_digital_id(self, digital_id: str) -> bool:
        if not digital_id or not digital_id.strip():
            return False
        try:
            record = get_tourist_service().get_digital_tourist_id(digital_id.strip())
            return bool(record and record.get("status") == "active")
        except Exception as e:
            logger.error(f"Digital ID verification failed: {str(e)}")
            return False

    def mock_login(self, role: str) -> Dict:
        """Development-only login as a fixed per-role user."""
        if not settings.DEBUG:
            raise PermissionError("Mock login is only available in DEBUG mode")
        if role not in ROLES:
            raise ValueError(f"Invalid role: {role}")

        email = f"{role}@gosafe.local"
        user = self._get_user_by_email(email)
        if user is None:
            user = self._create_user(
                email, generate_token(16), f"Mock {role.capitalize()}", role, is_verified=True
            )
        return {
            "user": to_auth_user(user),
            "token": self._create_session(user),
            "redirect_url": get_redirect_url_for_role(role),
        }


# Singleton instance
_auth_service = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
