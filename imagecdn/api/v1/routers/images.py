from __future__ import annotations

"""
Image CDN • TMDB image endpoints
================================

Route Index
-----------
- GET  /proxy-tmdb-image/{size}/{filename} → 302 to the CDN (hit) or 200 bytes (miss, now cached)
- POST /cache-tmdb-images                  → bulk warm a page of catalog records
- POST /upload-tmdb-image                  → copy one image URL into a `storage2` bucket

Errors
------
Every failure leaves as `{"success": false, "error": ...}`:
400 malformed path/body, 404 origin miss (proxy), 502 download failure
(upload), 500 configuration/storage/catalog failures. Unexpected exceptions
are converted here so the client still receives the JSON body with the
message.
"""

from typing import Tuple

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response
from loguru import logger

from imagecdn.core.dependencies import get_cache_warming_service, get_proxy_service, get_upload_service
from imagecdn.core.exceptions import AppException
from imagecdn.core.limiter import rate_limit
from imagecdn.core.metrics import inc_proxy
from imagecdn.schemas.enums import ImageSize
from imagecdn.schemas.images import CacheRequest, CacheRunReport, UploadRequest, UploadResult
from imagecdn.services.cache_warming_service import CacheWarmingService
from imagecdn.services.image_proxy_service import ImageProxyService, parse_proxy_path
from imagecdn.services.image_upload_service import ImageUploadService

router = APIRouter(tags=["Images"])
__all__ = ["router"]


def _unexpected(exc: Exception, where: str) -> AppException:
    logger.opt(exception=exc).error("{} failed", where)
    return AppException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message=str(exc) or exc.__class__.__name__,
    )


def proxy_target(rest: str) -> Tuple[ImageSize, str]:
    """Path parsing runs before any storage dependency, so a bad path is a plain 400."""
    try:
        return parse_proxy_path(rest)
    except AppException:
        inc_proxy("bad_request")
        raise


@router.get(
    "/proxy-tmdb-image/{rest:path}",
    summary="Serve a TMDB image through the CDN cache",
    responses={
        302: {"description": "Already cached; redirect to the CDN URL"},
        200: {"description": "Fetched from TMDB, cached, returned inline", "content": {"image/*": {}}},
        400: {"description": "Missing filename or unsupported size"},
        404: {"description": "TMDB has no such image"},
    },
)
async def proxy_tmdb_image(
    target: Tuple[ImageSize, str] = Depends(proxy_target),
    service: ImageProxyService = Depends(get_proxy_service),
) -> Response:
    size, filename = target
    try:
        result = await service.serve(size, filename)
    except AppException:
        raise
    except Exception as e:
        inc_proxy("error")
        raise _unexpected(e, "Proxy") from e

    if result.is_hit:
        return RedirectResponse(result.redirect_url, status_code=status.HTTP_302_FOUND)
    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={"Cache-Control": result.cache_control or ""},
    )


@router.post(
    "/cache-tmdb-images",
    response_model=CacheRunReport,
    response_model_exclude_none=True,
    summary="Warm the CDN cache for catalog records and rewrite their image paths",
)
@rate_limit("10/minute")
async def cache_tmdb_images(
    request: Request,
    payload: CacheRequest,
    service: CacheWarmingService = Depends(get_cache_warming_service),
) -> JSONResponse:
    try:
        report = await service.run(payload)
    except AppException:
        raise
    except Exception as e:
        raise _unexpected(e, "Cache warm") from e
    return JSONResponse(report.model_dump(mode="json", exclude_none=True))


@router.post(
    "/upload-tmdb-image",
    response_model=UploadResult,
    summary="Copy an image URL into a storage2 bucket (idempotent by fileName)",
)
@rate_limit("60/minute")
async def upload_tmdb_image(
    request: Request,
    payload: UploadRequest,
    service: ImageUploadService = Depends(get_upload_service),
) -> JSONResponse:
    try:
        result = await service.upload(payload)
    except AppException:
        raise
    except Exception as e:
        raise _unexpected(e, "Upload") from e
    return JSONResponse(result.model_dump(mode="json"))
