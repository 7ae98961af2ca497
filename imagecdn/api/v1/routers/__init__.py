"""
🧭 Image CDN • API v1 Router Aggregator
=======================================

Quick usage
-----------
    from imagecdn.api.v1.routers import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")
"""

from fastapi import APIRouter

from .images import router as images_router


def build_v1_router() -> APIRouter:
    """Compose the API v1 surface into a single `APIRouter`."""
    router = APIRouter()
    router.include_router(images_router)
    return router


router = build_v1_router()

__all__ = ["router", "build_v1_router", "images_router"]
