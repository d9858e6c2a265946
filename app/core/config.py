# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Supabase Postgres connection string, or sqlite:// locally)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - ADMIN_EMAIL (staff inbox for new-order notifications)
      - SITE_URL (used for links inside emails)
      - NOTIFICATIONS_ENABLED (set to false to skip email delivery)
      - CORS_ORIGINS (JSON list of allowed frontend origins)
      - LOG_LEVEL (DEBUG, INFO, WARNING, ...)
    """

    PROJECT_NAME: str = "Grunge Pallets Ordering API"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Cart snapshots are addressed by this key, namespaced per customer
    CART_STORAGE_KEY: str = "grunge-pallets-cart"

    # Notifications
    ADMIN_EMAIL: str = "orders@grungepallets.com"
    SITE_URL: str = "http://localhost:3000"
    NOTIFICATIONS_ENABLED: bool = True

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "https://grungepallets.com",
        "https://www.grungepallets.com",
    ]
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
