from __future__ import annotations

"""
Origin (TMDB) image fetcher.

One GET per call, no internal retry: the proxy answers the viewer right away
and the bulk warmer records the failure and moves on.

    fetcher = OriginFetcher(origin_base="https://image.tmdb.org/t/p")
    image = await fetcher.fetch("w500", "abc.jpg")
"""

import time
from dataclasses import dataclass
from typing import Optional

import httpx
from loguru import logger

from imagecdn.core.exceptions import OriginFetchError, OriginNotFound
from imagecdn.core.metrics import inc_origin_fetch, observe_origin_seconds
from imagecdn.utils.image_urls import SizeLike, tmdb_url_for

DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class OriginImage:
    content: bytes
    content_type: str
    status_code: int = 200


class OriginFetcher:
    """Downloads image bytes from the TMDB image host (or any absolute URL)."""

    def __init__(
        self,
        *,
        origin_base: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.origin_base = origin_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def url_for(self, size: SizeLike, filename: str) -> str:
        return tmdb_url_for(size, filename, origin_base=self.origin_base)

    async def fetch(self, size: SizeLike, filename: str) -> OriginImage:
        """GET `{origin_base}/{size}/{filename}`."""
        return await self.fetch_url(self.url_for(size, filename))

    async def fetch_url(self, url: str) -> OriginImage:
        """
        GET an absolute image URL.

        Raises
        ------
        OriginNotFound
            Origin answered with a non-2xx status (status embedded).
        OriginFetchError
            Timeout, DNS or connection failure.
        """
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            inc_origin_fetch("error")
            observe_origin_seconds("error", time.perf_counter() - started)
            logger.warning("Origin fetch failed | url={} | err={}", url, exc)
            raise OriginFetchError(url=url, reason=str(exc) or exc.__class__.__name__) from exc

        elapsed = time.perf_counter() - started
        if not response.is_success:
            inc_origin_fetch("not_found")
            observe_origin_seconds("not_found", elapsed)
            logger.info("Origin returned {} | url={}", response.status_code, url)
            raise OriginNotFound(url=url, origin_status=response.status_code)

        inc_origin_fetch("ok")
        observe_origin_seconds("ok", elapsed)
        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        logger.debug("Origin fetch ok | url={} | bytes={} | {:.3f}s", url, len(response.content), elapsed)
        return OriginImage(content=response.content, content_type=content_type, status_code=response.status_code)


__all__ = ["OriginImage", "OriginFetcher", "DEFAULT_CONTENT_TYPE"]
