"""Versioned API (v1) aggregator.

Expose an aggregated FastAPI router via `imagecdn.api.v1.routers.router`:

    from imagecdn.api.v1.routers import router as api_v1_router
"""

# Do not bind a `routers` name here: it would shadow the subpackage.

__all__ = []
