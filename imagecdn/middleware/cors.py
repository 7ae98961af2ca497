from __future__ import annotations

"""
CORS for the image endpoints.

Images are embedded by the public web app, the mobile apps and third-party
pages, so every origin is allowed. No cookies are involved, which is what
makes the wildcard origin acceptable.

Env
---
CORS_ALLOW_ORIGINS   default: "*" (comma separated to restrict)
"""

import os
from typing import Iterable, Optional

from starlette.middleware.cors import CORSMiddleware

DEFAULT_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def configure_cors(app, *, allow_headers: Optional[Iterable[str]] = None) -> None:
    """Install CORS middleware (all origins unless `CORS_ALLOW_ORIGINS` is set)."""
    origins_csv = os.getenv("CORS_ALLOW_ORIGINS", "*").strip() or "*"
    origins = [o.strip() for o in origins_csv.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "HEAD", "OPTIONS", "POST"],
        allow_headers=list(allow_headers or DEFAULT_ALLOW_HEADERS),
        expose_headers=["Location", "Retry-After", "X-Request-ID"],
        max_age=3600,
    )


__all__ = ["configure_cors", "DEFAULT_ALLOW_HEADERS"]
