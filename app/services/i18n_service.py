"""
i18n Service - static translation tables and the language switch.

Tables live in app/locales/<code>.json. Languages without a table, and keys
missing from a table, resolve through the fallback chain for that language.
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.core.settings import settings
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional
import json
import logging

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).resolve().parent.parent / "locales"

SUPPORTED_LANGUAGES = [
    # Northeast
    {"code": "as", "name": "Assamese", "native_name": "অসমীয়া", "region": "Northeast"},
    {"code": "bn", "name": "Bengali", "native_name": "বাংলা", "region": "Northeast"},
    {"code": "mni", "name": "Manipuri", "native_name": "মৈতৈলোন্", "region": "Northeast"},
    # India
    {"code": "hi", "name": "Hindi", "native_name": "हिंदी", "region": "India"},
    {"code": "te", "name": "Telugu", "native_name": "తెలుగు", "region": "India"},
    {"code": "ta", "name": "Tamil", "native_name": "தமிழ்", "region": "India"},
    {"code": "ml", "name": "Malayalam", "native_name": "മലയാളം", "region": "India"},
    {"code": "kn", "name": "Kannada", "native_name": "ಕನ್ನಡ", "region": "India"},
    {"code": "gu", "name": "Gujarati", "native_name": "ગુજરાતી", "region": "India"},
    {"code": "mr", "name": "Marathi", "native_name": "मराठी", "region": "India"},
    {"code": "pa", "name": "Punjabi", "native_name": "ਪੰਜਾਬੀ", "region": "India"},
    {"code": "or", "name": "Odia", "native_name": "ଓଡ଼ିଆ", "region": "India"},
    {"code": "ur", "name": "Urdu", "native_name": "اردو", "region": "India"},
    # International
    {"code": "en", "name": "English", "native_name": "English", "region": "International"},
    {"code": "zh", "name": "Chinese", "native_name": "中文", "region": "International"},
    {"code": "es", "name": "Spanish", "native_name": "Español", "region": "International"},
    {"code": "ar", "name": "Arabic", "native_name": "العربية", "region": "International"},
    {"code": "pt", "name": "Portuguese", "native_name": "Português", "region": "International"},
    {"code": "ru", "name": "Russian", "native_name": "Русский", "region": "International"},
    {"code": "de", "name": "German", "native_name": "Deutsch", "region": "International"},
    {"code": "ja", "name": "Japanese", "native_name": "日本語", "region": "International"},
    {"code": "ko", "name": "Korean", "native_name": "한국어", "region": "International"},
    {"code": "it", "name": "Italian", "native_name": "Italiano", "region": "International"},
]

SUPPORTED_CODES = {lang["code"] for lang in SUPPORTED_LANGUAGES}

REGION_FALLBACKS = {
    "Northeast": ["bn", "hi", "en"],
    "India": ["hi", "en"],
    "International": ["en"],
}


def is_supported(language: Optional[str]) -> bool:
    return language in SUPPORTED_CODES


def fallback_chain(language: str) -> List[str]:
    """
    Languages to try, in order, starting with the language itself.

    as -> [as, bn, hi, en]; ta -> [ta, hi, en]; es -> [es, en].
    Unsupported codes resolve to English only.
    """
    region = next((lang["region"] for lang in SUPPORTED_LANGUAGES if lang["code"] == language), None)
    if region is None:
        return ["en"]
    chain = [language]
    for code in REGION_FALLBACKS[region]:
        if code not in chain:
            chain.append(code)
    return chain


@lru_cache(maxsize=None)
def load_table(language: str) -> Dict:
    """Translation table for one language; empty when no file ships for it."""
    path = LOCALES_DIR / f"{language}.json"
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load translations for {language}: {e}")
        return {}


def _lookup(table: Dict, key: str) -> Optional[str]:
    node = table
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


def _deep_merge(base: Dict, override: Dict) -> Dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def translate(key: str, language: Optional[str] = None, **params) -> str:
    """
    Resolve a dotted key (e.g. "sos.sent") through the fallback chain.

    Returns the key itself when no table has it. Keyword params fill
    {placeholders} in the resolved text.
    """
    for code in fallback_chain(language or settings.DEFAULT_LANGUAGE):
        text = _lookup(load_table(code), key)
        if text is not None:
            if params:
                try:
                    return text.format(**params)
                except (KeyError, IndexError, ValueError):
                    return text
            return text
    return key


def get_translations(language: Optional[str] = None) -> Dict:
    """Merged table: the language's own entries over its fallbacks'."""
    merged: Dict = {}
    for code in reversed(fallback_chain(language or settings.DEFAULT_LANGUAGE)):
        merged = _deep_merge(merged, load_table(code))
    return merged


class I18nService:
    """
    Per-user language preference.
    """

    def __init__(self):
        self.db = get_db()

    def set_user_language(self, user_id: str, language: str) -> Dict:
        """
        Persist the user's language on their profile and user record.

        Raises:
            ValueError: missing user id or unsupported language code
            LookupError: unknown user
        """
        if not user_id or not user_id.strip():
            raise ValueError("User ID is required")
        if not is_supported(language):
            raise ValueError(f"Unsupported language: {language}")

        user_ref = self.db.collection("users").document(user_id)
        if not user_ref.get().exists:
            raise LookupError(f"User not found: {user_id}")

        user_ref.update({"language": language, "updated_at": firestore.SERVER_TIMESTAMP})
        self.db.collection("profiles").document(user_id).set(
            {"language": language, "updated_at": firestore.SERVER_TIMESTAMP},
            merge=True,
        )
        logger.info(f"Language for user {user_id} set to {language}")
        return {"user_id": user_id, "language": language, "fallbacks": fallback_chain(language)[1:]}

    def get_user_language(self, user_id: str) -> str:
        profile = self.db.collection("profiles").document(user_id).get()
        if profile.exists:
            language = (profile.to_dict() or {}).get("language")
            if is_supported(language):
                return language
        return settings.DEFAULT_LANGUAGE


# Singleton instance
_i18n_service = None


def get_i18n_service() -> I18nService:
    """Get singleton i18n service instance."""
    global _i18n_service
    if _i18n_service is None:
        _i18n_service = I18nService()
    return _i18n_service
