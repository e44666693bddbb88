from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ==============================
    # Application
    # ==============================
    APP_NAME: str = "Inventory Console"
    ENVIRONMENT: str = "local"

    # ==============================
    # Inventory API
    # ==============================
    API_URL: str = Field(
        "http://localhost:5001/api",
        validation_alias=AliasChoices("API_URL", "NEXT_PUBLIC_API_URL"),
    )
    API_TIMEOUT_SECONDS: float = 10.0
    UPLOAD_TIMEOUT_SECONDS: float = 15.0

    # ==============================
    # Auth Cookies
    # ==============================
    AUTH_COOKIE_NAME: str = "authToken"
    USER_COOKIE_NAME: str = "userData"
    AUTH_COOKIE_HOURS: int = 8
    AUTH_COOKIE_SECURE: bool = False

    # ==============================
    # Products
    # ==============================
    PRODUCTS_PAGE_SIZE: int = 20
    PRODUCTS_REFETCH_SECONDS: int = 5
    CATEGORIES_REFETCH_SECONDS: int = 30
    LOW_STOCK_THRESHOLD: int = 5
    EXPIRING_SOON_DAYS: int = 7

    # ==============================
    # Reports
    # ==============================
    EXPIRY_WINDOW_DAYS: int = 30
    REPORT_FETCH_LIMIT: int = 100

    # ==============================
    # Scanner
    # ==============================
    CAMERA_DEVICE_INDEX: int = 0
    CAMERA_READY_ATTEMPTS: int = 20
    CAMERA_READY_INTERVAL_MS: int = 100
    SCANNER_MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # ==============================
    # Database (request log)
    # ==============================
    DATABASE_URL: str = "sqlite:///./console.db"

    # ==============================
    # Logging
    # ==============================
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ==============================
    # Session
    # ==============================
    SESSION_SECRET: Optional[str] = None
    SESSION_COOKIE: str = "console_session"

    # ==============================
    # Request Log
    # ==============================
    REQUEST_LOG_ENABLED: bool = True
    REQUEST_LOG_RETENTION_DAYS: int = 14
    REQUEST_LOG_EXCLUDED_PATHS: str = "/static,/health,/favicon.ico"

    # ==============================
    # Scheduler
    # ==============================
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_PRUNE_AT: str = "03:00"
    SCHEDULER_POLL_SECONDS: int = 30
    SCHEDULER_TZ: str = "local"


@lru_cache
def get_settings() -> Settings:
    """Cached settings loader (once per process)."""
    return Settings()


__all__ = ["Settings", "get_settings"]
