# imagecdn/core/config.py
from __future__ import annotations

"""
# Image CDN • Centralized Configuration (Pydantic v2)

Single `settings` object with strongly-typed, environment-driven config.

## Goals
- Safe defaults for local/dev; explicit where prod needs secrets.
- Two named S3-compatible storage profiles (`storage1`, `storage2`) resolved
  into immutable `StorageProfile` values that are injected into clients.
- Missing storage credentials are a `ConfigurationError` at *use* time, so
  imports never crash in dev.

## Usage
    from imagecdn.core.config import settings
    profile = settings.storage_profile("storage1")
"""

import logging
from dataclasses import dataclass
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from imagecdn.core.exceptions import ConfigurationError

log = logging.getLogger(__name__)
load_dotenv()


StorageLocation = Literal["storage1", "storage2"]

# Region used when a profile's region is unset or still a template placeholder.
DEFAULT_PROFILE_REGIONS = {
    "storage1": "us-east-1",
    "storage2": "ap-southeast-1",
}

_REGION_PLACEHOLDERS = {"region", "<region>", "your-region", "changeme", "change-me", "todo", "xxx", "none", "null"}


# ─────────────────────────────────────────────────────────────
# Small helpers
# ─────────────────────────────────────────────────────────────
def _split_csv(v: str | None) -> list[str]:
    """Split a comma-separated string into a trimmed list (empty-safe)."""
    if not v:
        return []
    return [s.strip() for s in str(v).split(",") if s and s.strip()]


def sanitize_endpoint_host(value: Optional[str]) -> str:
    """Strip scheme and trailing slashes: 'https://s3.x.com/' -> 's3.x.com'."""
    s = (value or "").strip()
    for scheme in ("https://", "http://"):
        if s.lower().startswith(scheme):
            s = s[len(scheme):]
            break
    return s.rstrip("/")


def resolve_region(configured: Optional[str], location: str) -> str:
    """Return `configured` unless blank or a placeholder, else the profile default."""
    value = (configured or "").strip()
    if not value or value.lower() in _REGION_PLACEHOLDERS or value.startswith("<"):
        return DEFAULT_PROFILE_REGIONS.get(location, "us-east-1")
    return value


@dataclass(frozen=True)
class StorageProfile:
    """Resolved credentials/endpoint for one S3-compatible storage location."""

    name: str
    endpoint_host: str
    region: str
    access_key_id: str
    secret_access_key: SecretStr

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.endpoint_host}"

    def __repr__(self) -> str:  # never print secrets
        return f"StorageProfile(name={self.name!r}, endpoint_host={self.endpoint_host!r}, region={self.region!r})"


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    """
    Global application settings sourced from environment.

    Storage:
        - `IDRIVE_E2_STORAGE{1,2}_*` describe the two S3-compatible profiles.
        - Regions fall back to a per-profile default when blank/placeholder.

    Catalog:
        - `CATALOG_BACKEND=sql` talks to the `content` table via SQLAlchemy.
        - `CATALOG_BACKEND=memory` keeps records in-process (dev/tests).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # don't crash on unknown keys
    )

    # ── App meta ──────────────────────────────────────────────
    PROJECT_NAME: str = "Image CDN API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENV: Literal["development", "staging", "production"] = "development"
    ENABLE_DOCS: bool = True

    # ── CDN / origin ──────────────────────────────────────────
    CDN_DOMAIN: str = "cdn.khmerzoon.biz"
    CDN_BUCKET: str = "images"
    TMDB_IMAGE_BASE: str = "https://image.tmdb.org/t/p"
    IMAGE_CACHE_CONTROL: str = "public, max-age=31536000, immutable"
    ORIGIN_TIMEOUT_SECONDS: float = Field(15.0, gt=0, le=120)

    # ── Bulk cache warming ────────────────────────────────────
    CACHE_WARM_PAGE_SIZE: int = Field(100, ge=1, le=1000)
    CACHE_WARM_DELAY_MS: int = Field(100, ge=0, le=10_000)
    CACHE_WARM_DEFAULT_SIZES: str = "w500,original"  # CSV
    BACKFILL_ON_CACHE_HIT: bool = True

    # ── Storage profiles (iDrive E2 / any S3-compatible) ──────
    IDRIVE_E2_STORAGE1_ENDPOINT: Optional[str] = None
    IDRIVE_E2_STORAGE1_ACCESS_KEY: Optional[str] = None
    IDRIVE_E2_STORAGE1_SECRET_KEY: Optional[SecretStr] = None
    IDRIVE_E2_STORAGE1_REGION: Optional[str] = None

    IDRIVE_E2_STORAGE2_ENDPOINT: Optional[str] = None
    IDRIVE_E2_STORAGE2_ACCESS_KEY: Optional[str] = None
    IDRIVE_E2_STORAGE2_SECRET_KEY: Optional[SecretStr] = None
    IDRIVE_E2_STORAGE2_REGION: Optional[str] = None

    # ── Catalog store (PostgreSQL) ────────────────────────────
    CATALOG_BACKEND: Literal["sql", "memory"] = "sql"
    CATALOG_DATABASE_URL: Optional[str] = None  # full DSN wins over the parts below
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: SecretStr = SecretStr("")
    POSTGRES_DB: str = "postgres"

    # ── Validators / normalizers ──────────────────────────────
    @field_validator("CDN_DOMAIN", mode="before")
    @classmethod
    def _normalize_cdn_domain(cls, v: str | None) -> str:
        """Accept 'cdn.example.com' or 'https://cdn.example.com/'; keep the bare host."""
        return sanitize_endpoint_host(v) or "cdn.khmerzoon.biz"

    @field_validator("TMDB_IMAGE_BASE", mode="before")
    @classmethod
    def _normalize_origin_base(cls, v: str | None) -> str:
        return (v or "https://image.tmdb.org/t/p").strip().rstrip("/")

    # ── Derived / convenience properties ─────────────────────
    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def cdn_base_url(self) -> str:
        """'cdn.example.com' -> 'https://cdn.example.com' (no trailing slash)."""
        return f"https://{self.CDN_DOMAIN}"

    @property
    def default_warm_sizes(self) -> List[str]:
        """List form of `CACHE_WARM_DEFAULT_SIZES`."""
        return _split_csv(self.CACHE_WARM_DEFAULT_SIZES)

    @property
    def cache_warm_delay_seconds(self) -> float:
        return self.CACHE_WARM_DELAY_MS / 1000.0

    @property
    def DATABASE_URL(self) -> str:
        """Sync DSN."""
        if self.CATALOG_DATABASE_URL:
            return self.CATALOG_DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD.get_secret_value()}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        """Async SQLAlchemy DSN."""
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    # ── Storage profiles ─────────────────────────────────────
    def storage_profile(self, location: str) -> StorageProfile:
        """
        Resolve a named storage profile.

        Raises
        ------
        ConfigurationError
            Unknown profile name or missing endpoint/access key/secret key.
        """
        prefix = {"storage1": "IDRIVE_E2_STORAGE1", "storage2": "IDRIVE_E2_STORAGE2"}.get(location)
        if prefix is None:
            raise ConfigurationError(f"Unknown storage location '{location}'")

        endpoint = sanitize_endpoint_host(getattr(self, f"{prefix}_ENDPOINT"))
        access_key = (getattr(self, f"{prefix}_ACCESS_KEY") or "").strip()
        secret = getattr(self, f"{prefix}_SECRET_KEY")
        secret_value = secret.get_secret_value().strip() if secret is not None else ""

        if not endpoint or not access_key or not secret_value:
            raise ConfigurationError(
                f"Storage credentials not configured for {location}",
                details={"location": location},
            )

        region = resolve_region(getattr(self, f"{prefix}_REGION"), location)
        return StorageProfile(
            name=location,
            endpoint_host=endpoint,
            region=region,
            access_key_id=access_key,
            secret_access_key=SecretStr(secret_value),
        )


# Singleton instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return settings
