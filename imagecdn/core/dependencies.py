# imagecdn/core/dependencies.py
from __future__ import annotations

"""
Image CDN • Request dependencies
================================

Builds every collaborator from the injected `Settings`, so handlers never read
the environment themselves and tests can swap any piece through
`app.dependency_overrides`.

Highlights
----------
- One cached `S3Client` per (profile, bucket).
- Missing storage credentials surface as `ConfigurationError` (500) the first
  time a route needs that profile, never at import.
"""

import threading
from typing import Dict, Tuple

from fastapi import Depends

from imagecdn.core.config import Settings, get_settings
from imagecdn.repositories.catalog import CatalogRepositoryProtocol, get_catalog_repository
from imagecdn.services.cache_warming_service import CacheWarmingService
from imagecdn.services.image_proxy_service import ImageProxyService
from imagecdn.services.image_upload_service import ImageUploadService
from imagecdn.services.origin_fetcher import OriginFetcher
from imagecdn.utils.aws import S3Client

CDN_STORAGE = "storage1"
UPLOAD_STORAGE = "storage2"

_clients: Dict[Tuple[str, str], S3Client] = {}
_clients_lock = threading.Lock()


def build_s3_client(settings: Settings, location: str, bucket: str) -> S3Client:
    """Return the cached client for `(location, bucket)`, creating it on first use."""
    cache_key = (location, bucket)
    with _clients_lock:
        client = _clients.get(cache_key)
        if client is None:
            profile = settings.storage_profile(location)
            client = S3Client(profile, bucket, cdn_base_url=settings.cdn_base_url)
            _clients[cache_key] = client
        return client


def reset_s3_clients() -> None:
    with _clients_lock:
        _clients.clear()


# ──────────────────────────────────────────────────────────────
# 🧱 Collaborators
# ──────────────────────────────────────────────────────────────
def get_cdn_store(settings: Settings = Depends(get_settings)) -> S3Client:
    """Client for the public CDN bucket on the `storage1` profile."""
    return build_s3_client(settings, CDN_STORAGE, settings.CDN_BUCKET)


def get_origin_fetcher(settings: Settings = Depends(get_settings)) -> OriginFetcher:
    return OriginFetcher(origin_base=settings.TMDB_IMAGE_BASE, timeout=settings.ORIGIN_TIMEOUT_SECONDS)


def get_catalog() -> CatalogRepositoryProtocol:
    return get_catalog_repository()


# ──────────────────────────────────────────────────────────────
# 🧩 Services
# ──────────────────────────────────────────────────────────────
def get_proxy_service(
    settings: Settings = Depends(get_settings),
    store: S3Client = Depends(get_cdn_store),
    fetcher: OriginFetcher = Depends(get_origin_fetcher),
) -> ImageProxyService:
    return ImageProxyService(
        store=store,
        fetcher=fetcher,
        cdn_base=settings.cdn_base_url,
        cache_control=settings.IMAGE_CACHE_CONTROL,
    )


def get_cache_warming_service(
    settings: Settings = Depends(get_settings),
    store: S3Client = Depends(get_cdn_store),
    fetcher: OriginFetcher = Depends(get_origin_fetcher),
    catalog: CatalogRepositoryProtocol = Depends(get_catalog),
) -> CacheWarmingService:
    return CacheWarmingService(
        store=store,
        fetcher=fetcher,
        catalog=catalog,
        cdn_base=settings.cdn_base_url,
        cache_control=settings.IMAGE_CACHE_CONTROL,
        default_sizes=settings.default_warm_sizes,
        page_size=settings.CACHE_WARM_PAGE_SIZE,
        delay_seconds=settings.cache_warm_delay_seconds,
        backfill_on_hit=settings.BACKFILL_ON_CACHE_HIT,
    )


def get_upload_service(
    settings: Settings = Depends(get_settings),
    fetcher: OriginFetcher = Depends(get_origin_fetcher),
) -> ImageUploadService:
    return ImageUploadService(
        store_for_bucket=lambda bucket: build_s3_client(settings, UPLOAD_STORAGE, bucket),
        fetcher=fetcher,
        cache_control=settings.IMAGE_CACHE_CONTROL,
    )


__all__ = [
    "CDN_STORAGE",
    "UPLOAD_STORAGE",
    "build_s3_client",
    "reset_s3_clients",
    "get_cdn_store",
    "get_origin_fetcher",
    "get_catalog",
    "get_proxy_service",
    "get_cache_warming_service",
    "get_upload_service",
]
