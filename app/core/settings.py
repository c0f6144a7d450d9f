"""
Core settings and environment variables for CivicLens.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "CivicLens"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS - Frontend URLs allowed to access this API (comma separated)
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:5174,http://127.0.0.1:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # Gemini classification
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_DEFAULT_MODEL: str = "gemini-1.5-flash-latest"  # Last-known-good model id
    GEMINI_PINNED_MODEL: Optional[str] = None  # Skips catalog discovery when set
    AI_TIMEOUT_SECONDS: float = 10.0  # Applies to catalog lookup and inference separately

    # Email channel
    # - EMAIL_FUNCTION_URL: outbound mail function; when unset, sends are only logged
    EMAIL_FUNCTION_URL: Optional[str] = None
    EMAIL_SENDER: str = "CivicLens <notifications@civiclens.app>"
    APP_PUBLIC_URL: str = "https://civiclens.vercel.app"

    # Push channel / in-app feed
    PUSH_AUTO_DISMISS_SECONDS: int = 5  # Client closes the notification after this
    PUSH_TTL_SECONDS: int = 3600  # How long FCM may hold an undelivered push
    NOTIFICATION_FEED_LIMIT: int = 50
    TOAST_QUEUE_SIZE: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origin_list(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
