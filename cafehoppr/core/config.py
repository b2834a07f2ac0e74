from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


# Load .env early for local development
load_dotenv()


class ConfigurationError(RuntimeError):
    """Raised at startup when a required setting is missing."""


class Settings(BaseSettings):
    """Application settings shared by the API service and the web frontend."""

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    # Database (required by the API and by the web frontend when BACKEND=sql)
    database_url: str | None = os.getenv("DATABASE_URL")

    # Security
    app_secret_key: str = os.getenv("APP_SECRET_KEY", "dev-secret-change-me")
    access_token_exp_minutes: int = int(os.getenv("ACCESS_TOKEN_EXP_MINUTES", str(60 * 24)))
    contributor_token_exp_minutes: int = int(os.getenv("CONTRIBUTOR_TOKEN_EXP_MINUTES", "60"))
    upsert_token_exp_hours: int = int(os.getenv("UPSERT_TOKEN_EXP_HOURS", str(24 * 7)))
    default_access_code: str = os.getenv("DEFAULT_ACCESS_CODE", "admin123")

    # Write policy
    require_write_token: bool = os.getenv("REQUIRE_WRITE_TOKEN", "true").lower() in ("1", "true", "yes")
    allow_cafe_delete: bool = os.getenv("ALLOW_CAFE_DELETE", "true").lower() in ("1", "true", "yes")
    default_cafe_status: str = os.getenv("DEFAULT_CAFE_STATUS", "approved")

    # Uploaded cafe photos
    upload_dir: str = os.getenv("UPLOAD_DIR", "./uploads")
    max_photos_per_cafe: int = int(os.getenv("MAX_PHOTOS_PER_CAFE", "5"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_dir: str = os.getenv("LOG_DIR", "./logs")

    # Web frontend
    backend: str = os.getenv("BACKEND", "api")  # api | sql
    api_base_url: str | None = os.getenv("API_BASE_URL")
    api_timeout_seconds: int = int(os.getenv("API_TIMEOUT_SECONDS", "20"))
    flask_secret_key: str = os.getenv("FLASK_SECRET_KEY", os.getenv("APP_SECRET_KEY", "dev-change-me"))
    staging_dir: str = os.getenv("STAGING_DIR", "./staging")
    show_sample_on_error: bool = os.getenv("SHOW_SAMPLE_ON_ERROR", "false").lower() in ("1", "true", "yes")

    def require_database_url(self) -> str:
        if not self.database_url:
            raise ConfigurationError("DATABASE_URL is not set. Configure it in the environment or .env file.")
        return self.database_url

    def require_api_base_url(self) -> str:
        if not self.api_base_url:
            raise ConfigurationError("API_BASE_URL is not set. Configure it in the environment or .env file.")
        return self.api_base_url


settings = Settings()
