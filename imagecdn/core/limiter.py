from __future__ import annotations

"""
Image CDN • HTTP Rate Limiting (SlowAPI)
========================================

Highlights
----------
- Per-client-IP keying (X-Forwarded-For / X-Real-IP / client.host).
- Exemptions for health/metrics/docs and configurable trusted IPs.
- **Test/CI friendly**:
    - `RATE_LIMIT_NAMESPACE`: prefixes keys so parallel runs don't collide.
    - `RATE_LIMIT_TEST_BYPASS`: disables limits when truthy.
- **Backends**: Redis via `RATELIMIT_STORAGE_URI` or in-memory fallback.

Environment
-----------
RATE_LIMIT_ENABLED           default: "true"
DEFAULT_RATE_LIMIT           default: "600/minute"
RATELIMIT_STORAGE_URI        default: "" (falls back to "memory://")
RATE_LIMIT_SKIP_PATHS        default: "/healthz,/readyz,/metrics,/docs,/openapi.json"
RATE_LIMIT_TRUSTED_IPS       default: "" (comma separated)
RATE_LIMIT_NAMESPACE         default: ""
RATE_LIMIT_TEST_BYPASS       default: "" (truthy to bypass in tests/CI)

Usage
-----
    from imagecdn.core.limiter import install_rate_limiter, rate_limit

    install_rate_limiter(app)

    @router.post("/cache-tmdb-images")
    @rate_limit("10/minute")
    async def cache_images(request: Request, ...): ...
"""

import os
from typing import Callable, List, Optional, Set

from dotenv import load_dotenv
from loguru import logger
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_LIMIT = os.getenv("DEFAULT_RATE_LIMIT", "600/minute").strip()
STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "").strip()

SKIP_PATHS: List[str] = [
    p.strip()
    for p in os.getenv("RATE_LIMIT_SKIP_PATHS", "/healthz,/readyz,/metrics,/docs,/openapi.json").split(",")
    if p.strip()
]
TRUSTED_IPS: Set[str] = {ip.strip() for ip in os.getenv("RATE_LIMIT_TRUSTED_IPS", "").split(",") if ip.strip()}
NAMESPACE = os.getenv("RATE_LIMIT_NAMESPACE", "").strip()


def _client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        ip = xff.split(",")[0].strip()
        if ip:
            return ip
    xri = request.headers.get("x-real-ip")
    if xri:
        return xri.strip()
    return get_remote_address(request) or "unknown"


def get_rate_limit_key(request: Request) -> str:
    """`ip:<addr>`, prefixed with RATE_LIMIT_NAMESPACE when set."""
    key = f"ip:{_client_ip(request)}"
    return f"{NAMESPACE}:{key}" if NAMESPACE else key


def _path_is_skipped(path: str) -> bool:
    return any(path == p or path.startswith(p) for p in SKIP_PATHS)


def should_exempt_request(request: Optional[Request]) -> bool:
    """
    Exempt a request when limits are disabled, the path is skipped, the client
    is trusted, or the test bypass is on. Env flags are re-read per request so
    tests can toggle them without re-importing this module.
    """
    if os.getenv("RATE_LIMIT_ENABLED", "true").strip().lower() != "true":
        return True
    if os.getenv("RATE_LIMIT_TEST_BYPASS", "").strip().lower() in _TRUTHY:
        return True
    if request is None:
        return False
    if _path_is_skipped(request.url.path):
        return True
    return _client_ip(request) in TRUSTED_IPS


def _build_default_limits() -> List[str]:
    return [chunk.strip() for chunk in DEFAULT_LIMIT.split(",") if chunk.strip()]


def _make_limiter() -> Optional[Limiter]:
    storage_uri = STORAGE_URI or "memory://"
    try:
        limiter = Limiter(
            key_func=get_rate_limit_key,
            default_limits=_build_default_limits(),
            headers_enabled=True,
            storage_uri=storage_uri,
        )
    except Exception as e:
        logger.error(f"❌ Failed to init Limiter; limits disabled | err={e}")
        return None
    logger.debug("RateLimiter ready | default={} | storage={}", _build_default_limits(), storage_uri)
    return limiter


limiter: Optional[Limiter] = _make_limiter()


def _exempt_when(request: Optional[Request] = None) -> bool:
    req = request
    if req is None and limiter is not None:
        try:
            req = limiter._request_context.get()  # type: ignore[attr-defined]
        except (AttributeError, LookupError):
            req = None
    return should_exempt_request(req)


def rate_limit(*limits: str) -> Callable:
    """
    Apply per-route limits with the exemptions above.

    The decorated endpoint must accept `request: Request` and return a
    `Response` (SlowAPI injects rate-limit headers into it).
    """
    if limiter is None:
        def _noop(fn: Callable) -> Callable:
            return fn
        return _noop

    selected = list(limits) if limits else _build_default_limits()
    # One decorator per route; SlowAPI parses "5/second;100/minute" itself.
    return limiter.limit(";".join(selected), exempt_when=_exempt_when)


def install_rate_limiter(app) -> None:
    """Attach SlowAPI middleware (skipped when RATE_LIMIT_ENABLED is false)."""
    if not limiter:
        logger.warning("RateLimiter not initialized; middleware not installed")
        return
    if os.getenv("RATE_LIMIT_ENABLED", "true").strip().lower() != "true":
        logger.info("RateLimiter disabled by env; middleware not installed")
        return
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)


__all__ = ["limiter", "rate_limit", "install_rate_limiter", "should_exempt_request", "get_rate_limit_key"]
