from __future__ import annotations

"""
Image CDN • Request/response schemas
====================================

Wire names are camelCase (`contentIds`, `cacheAll`, `imageUrl`, ...) because
the existing web/mobile clients already send them; Python attributes stay
snake_case via aliases.

Failure Modes
-------------
- Unknown size values and missing required fields fail validation → 400.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from imagecdn.schemas.enums import CacheStatus, ImageSize


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# === Bulk cache warming ====================================================

class CacheRequest(_CamelModel):
    """Body of `POST /cache-tmdb-images`."""
    content_ids: Optional[List[str]] = Field(default=None, alias="contentIds")
    cache_all: bool = Field(default=False, alias="cacheAll")
    sizes: Optional[List[ImageSize]] = Field(default=None, min_length=1)  # None → settings default

    @model_validator(mode="after")
    def _needs_a_target(self) -> "CacheRequest":
        if not self.cache_all and not self.content_ids:
            raise ValueError("Either cacheAll=true or a non-empty contentIds is required")
        return self


class CacheDetail(BaseModel):
    path: str
    status: CacheStatus
    error: Optional[str] = None


class CacheRunReport(BaseModel):
    """Aggregate outcome of one warming run. Returned, never persisted."""
    success: bool = True
    cached: int = 0
    skipped: int = 0
    failed: int = 0
    details: List[CacheDetail] = Field(default_factory=list)

    def record(self, path: str, status: CacheStatus, error: Optional[str] = None) -> None:
        """Count one outcome and append its detail entry."""
        if status is CacheStatus.CACHED:
            self.cached += 1
        elif status is CacheStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
        self.details.append(CacheDetail(path=path, status=status, error=error))


# === Direct upload =========================================================

class UploadRequest(_CamelModel):
    """Body of `POST /upload-tmdb-image`."""
    image_url: str = Field(alias="imageUrl", min_length=1)
    file_name: str = Field(alias="fileName", min_length=1)
    bucket: str = Field(min_length=1)


class UploadResult(BaseModel):
    success: bool = True
    url: str
    cached: bool


__all__ = ["CacheRequest", "CacheDetail", "CacheRunReport", "UploadRequest", "UploadResult"]
