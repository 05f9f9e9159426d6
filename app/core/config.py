"""Application configuration using Pydantic Settings.

This module provides type-safe environment variable management
for the database, the storage providers and the reverse geocoder.
Only the credentials of the provider actually selected are required.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        APP_ENV: Application environment (development, staging, production).
        DEBUG: Enable debug mode.
        API_PREFIX: Prefix for all API routes.
        PUBLIC_BASE_URL: Public origin of the site, used for same-origin media URLs.
        MEDIA_DEFAULT_PROVIDER: Provider used when an upload names none.
        MEDIA_DOMAIN: CDN domain overriding every non-local provider's public URL.
        MEDIA_KEY_DATE_SOURCE: Whether object keys are dated by upload or capture time.
        GEOCODE_PROVIDER: Reverse geocoder strategy (nominatim, locationiq, none).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api/v1"
    CORS_ORIGINS: str = "http://localhost:3000"
    PUBLIC_BASE_URL: Optional[str] = None

    # Database
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "gallery"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    # Media
    MEDIA_DEFAULT_PROVIDER: Optional[str] = None
    MEDIA_DOMAIN: Optional[str] = None
    MEDIA_KEY_DATE_SOURCE: Literal["upload", "capture"] = "upload"
    MEDIA_MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024
    STORAGE_TIMEOUT: float = 30.0

    # Local filesystem
    MEDIA_LOCAL_DIR: str = "public/uploads"
    MEDIA_LOCAL_PUBLIC_URL: str = "/uploads"

    # Bearer-token bucket
    BEARER_ENDPOINT: Optional[str] = None
    BEARER_BUCKET: Optional[str] = None
    BEARER_TOKEN: Optional[str] = None
    BEARER_DOMAIN: Optional[str] = None

    # HMAC-signed bucket (UpYun REST API)
    HMAC_ENDPOINT: str = "https://v0.api.upyun.com"
    HMAC_BUCKET: Optional[str] = None
    HMAC_OPERATOR: Optional[str] = None
    HMAC_PASSWORD: Optional[str] = None
    HMAC_DOMAIN: Optional[str] = None

    # Canonical-request signed bucket (COS XML API)
    SIGNED_SECRET_ID: Optional[str] = None
    SIGNED_SECRET_KEY: Optional[str] = None
    SIGNED_BUCKET: Optional[str] = None
    SIGNED_REGION: Optional[str] = None
    SIGNED_DOMAIN: Optional[str] = None
    SIGNED_SIGN_EXPIRES: int = 600

    # Reverse geocoding
    GEOCODE_PROVIDER: str = "nominatim"
    GEOCODE_API_KEY: Optional[str] = None
    GEOCODE_USER_AGENT: str = "gallery-ingest/1.0 (photo gallery)"
    GEOCODE_LANGUAGE: str = "zh-CN,zh;q=0.9,en;q=0.8"
    GEOCODE_TIMEOUT: float = 3.0

    @computed_field  # type: ignore[misc]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Construct the async database URI.

        Returns:
            ``DATABASE_URL`` when set, otherwise an asyncpg PostgreSQL URI.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string.

        Returns:
            List of allowed origin URLs.
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance.
    """
    return Settings()


settings = get_settings()
