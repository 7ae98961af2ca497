from __future__ import annotations

"""
JSON exception handlers.

`imagecdn.main` installs these so every error leaves the service as
`{"success": false, "error": "..."}` (plus `code`, `request_id` and optional
`details`), regardless of which layer raised it.
"""

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from imagecdn.core.exceptions import AppException
from imagecdn.middleware.request_id import get_request_id


def _error(status_code: int, message: str, request: Request, **extra) -> JSONResponse:
    body = {
        "success": False,
        "error": message,
        "code": status_code,
        "request_id": get_request_id(request) or "N/A",
    }
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:  # type: ignore
    if exc.status_code >= 500:
        logger.error("{} on {}: {}", exc.__class__.__name__, request.url.path, exc.message)
    else:
        logger.info("{} on {}: {}", exc.__class__.__name__, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_problem(fallback_request_id=get_request_id(request) or None),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error(exc.status_code, detail, request)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore
    # Body/path shape errors are a client mistake; nothing has been touched yet.
    return _error(
        status.HTTP_400_BAD_REQUEST,
        "Malformed request",
        request,
        details=jsonable_errors(exc),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore
    logger.opt(exception=exc).error("Unhandled error on {}", request.url.path)
    message = str(exc) or exc.__class__.__name__
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, message, request)


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Strip non-serializable context (e.g. raised ValueErrors) from pydantic errors."""
    out: list[dict] = []
    for err in exc.errors():
        out.append({"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")})
    return out


__all__ = [
    "app_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "global_exception_handler",
]
