"""
Core settings and environment variables for GoSafe.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "GoSafe Tourist Safety API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS - Frontend URLs allowed to access this API (comma-separated)
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8080,http://127.0.0.1:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # Mock DB mode for local development without Firebase credentials.
    # Empty MOCK_DB_PATH keeps the mock store in memory only.
    USE_MOCK_DB: bool = False
    MOCK_DB_PATH: str = "./mock_db.json"

    # Authentication
    PASSWORD_HASH_METHOD: str = "pbkdf2:sha256:600000"
    SESSION_TTL_HOURS: int = 24
    AUTH_TOKEN_TTL_MINUTES: int = 60  # Email verification / password reset tokens
    REQUIRE_EMAIL_VERIFICATION: bool = True

    # Assistant chat
    AI_ENABLED: bool = True
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    AI_TIMEOUT_SECONDS: float = 10.0

    # Notifications (authorities, emergency contacts)
    NOTIFICATION_WEBHOOK_URL: Optional[str] = None
    NOTIFICATION_TIMEOUT_SECONDS: float = 3.0

    # Geofencing
    GEOFENCE_CACHE_SECONDS: int = 300

    # Seed demo geofences and risk areas on startup when the store has none
    SEED_DEMO_DATA: bool = False

    # i18n
    DEFAULT_LANGUAGE: str = "en"

    # Wall-clock zone for time-of-day patterns in SOS history
    TIMEZONE: str = "Asia/Kolkata"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"  # Allow extra env vars to prevent crashes

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
