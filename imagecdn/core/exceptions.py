# imagecdn/core/exceptions.py
from __future__ import annotations

"""
Image CDN • Application Exceptions
==================================
A small, consistent layer on top of FastAPI/Starlette's `HTTPException` that
lets us attach structured metadata and render one JSON error shape through
`imagecdn.core.exception_handlers`.

Taxonomy
--------
- `ConfigurationError`   → 500, required credential/endpoint missing (never retried)
- `MalformedRequest`     → 400, missing/invalid path or body fields (no side effects)
- `OriginNotFound`       → 404, TMDB answered with a non-success status
- `OriginFetchError`     → 502, TMDB could not be reached at all
- `StoreTransportError`  → 500, object-store HEAD/PUT failed for a reason other than "not found"
- `CatalogQueryError`    → 500, catalog record query/update failed

Usage
-----
    raise OriginNotFound(url=tmdb_url, origin_status=404)
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "ConfigurationError",
    "MalformedRequest",
    "OriginError",
    "OriginNotFound",
    "OriginFetchError",
    "StoreTransportError",
    "CatalogQueryError",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception with optional metadata.

    Attributes
    -----------
    status_code : int
        HTTP status code the error maps to when it reaches a handler.
    message : str
        Human-readable error message (serialized as `error`).
    code : int
        Optional internal/typed error code. Defaults to `status_code`.
    details : dict | list | str | None
        Machine-readable details (e.g., origin status, storage location).
    """

    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code: int = int(code or status_code)
        self.message: str = message
        self.request_id: Optional[str] = request_id
        self.details: Optional[Any] = details

    def __str__(self) -> str:
        return self.message

    def to_problem(self, *, fallback_request_id: Optional[str] = None) -> Dict[str, Any]:
        """Return a dict matching our JSON error shape."""
        body: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
            "request_id": self.request_id or fallback_request_id or "N/A",
        }
        if self.details is not None:
            body["details"] = self.details
        return body


# ──────────────────────────────────────────────────────────────
# ⚙️ Setup / request shape
# ──────────────────────────────────────────────────────────────
class ConfigurationError(AppException):
    """Required storage/catalog configuration is missing. Fatal for the invocation."""

    def __init__(self, message: str = "Service is not configured", *, details: Optional[Any] = None) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message=message,
            details=details,
        )


class MalformedRequest(AppException):
    """Missing or invalid request fields (400)."""

    def __init__(self, message: str = "Malformed request", *, details: Optional[Any] = None) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            message=message,
            details=details,
        )


# ──────────────────────────────────────────────────────────────
# 🌐 Origin (TMDB)
# ──────────────────────────────────────────────────────────────
class OriginError(AppException):
    """Base for failures talking to the image origin."""

    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        url: str,
        origin_status: Optional[int] = None,
    ) -> None:
        details: Dict[str, Any] = {"url": url}
        if origin_status is not None:
            details["origin_status"] = origin_status
        super().__init__(status_code=status_code, message=message, details=details)
        self.url = url
        self.origin_status = origin_status


class OriginNotFound(OriginError):
    """Origin answered with a non-success status."""

    def __init__(self, *, url: str, origin_status: int) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            message=f"TMDB returned {origin_status}",
            url=url,
            origin_status=origin_status,
        )


class OriginFetchError(OriginError):
    """Origin could not be reached (DNS, timeout, connection reset)."""

    def __init__(self, *, url: str, reason: str) -> None:
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            message=f"Failed to fetch image from origin: {reason}",
            url=url,
        )


# ──────────────────────────────────────────────────────────────
# 🪣 Storage / catalog
# ──────────────────────────────────────────────────────────────
class StoreTransportError(AppException):
    """Object-store existence check or write failed (not a plain 'not found')."""

    def __init__(self, message: str, *, key: Optional[str] = None) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message=message,
            details={"key": key} if key else None,
        )
        self.key = key


class CatalogQueryError(AppException):
    """Catalog record query or update failed."""

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message=message,
            details=details,
        )
