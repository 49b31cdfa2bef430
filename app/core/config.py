# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key, used by the per-browser auth clients)
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (storage uploads/removals and bucket setup)
      - SITE_URL (public origin used in auth redirect links)
    """

    PROJECT_NAME: str = "El Studio Barberia API"
    API_PREFIX: str = "/api"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Public origin of the web app, e.g. https://elstudio.vercel.app
    SITE_URL: str = "http://localhost:3000"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Browser sessions (one auth provider per browser cookie)
    SESSION_COOKIE_NAME: str = "studio_sid"
    SESSION_IDLE_MINUTES: int = 60
    SESSION_RESOLVE_TIMEOUT_SECONDS: float = 5.0

    # Upload proxy limit
    MAX_UPLOAD_MB: int = 100

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class ProvisioningSettings(BaseSettings):
    """
    Settings for the storage provisioning scripts.

    Both values are optional here so the scripts can report exactly
    which ones are missing instead of failing on validation.
    """

    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def missing(self) -> list[str]:
        return [
            name
            for name in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")
            if not getattr(self, name)
        ]


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
