from __future__ import annotations

"""
On-demand image proxy.

Called once per image view with `/{size}/{filename}`:

1. resolve the object key `{size}/{filename}`
2. HEAD the CDN bucket; a hit is answered with a redirect to the CDN URL and
   the origin is never contacted
3. on a miss, fetch from TMDB, write the bytes with an immutable
   Cache-Control, and return the very same bytes inline

Two concurrent first views of one image may both miss, both fetch and both
write. The writes carry identical content, so the race is accepted.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Tuple

from loguru import logger

from imagecdn.core.exceptions import MalformedRequest, OriginError
from imagecdn.core.metrics import inc_proxy, inc_store_write
from imagecdn.services.origin_fetcher import OriginFetcher
from imagecdn.utils.aws import S3Client
from imagecdn.utils.image_urls import cdn_url_for_key, is_known_size, resolve_image
from imagecdn.schemas.enums import ImageSize


@dataclass(frozen=True)
class ProxyResult:
    """Either a redirect (cache hit) or inline bytes (cache miss, now stored)."""

    object_key: str
    redirect_url: Optional[str] = None
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    cache_control: Optional[str] = None

    @property
    def is_hit(self) -> bool:
        return self.redirect_url is not None


def parse_proxy_path(rest: str) -> Tuple[ImageSize, str]:
    """
    Split the path after `/proxy-tmdb-image/` into `(size, filename)`.

    Raises
    ------
    MalformedRequest
        Missing filename, unknown size, or extra path segments.
    """
    parts = [p for p in (rest or "").split("/") if p]
    if len(parts) < 2:
        raise MalformedRequest("Filename required")
    if len(parts) > 2:
        raise MalformedRequest("Expected /{size}/{filename}", details={"path": rest})
    size, filename = parts
    if not is_known_size(size):
        raise MalformedRequest(
            f"Unsupported image size '{size}'",
            details={"allowed": [s.value for s in ImageSize]},
        )
    return ImageSize(size), filename


class ImageProxyService:
    def __init__(
        self,
        *,
        store: S3Client,
        fetcher: OriginFetcher,
        cdn_base: str,
        cache_control: str,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.cdn_base = cdn_base
        self.cache_control = cache_control

    async def serve(self, size: ImageSize, filename: str) -> ProxyResult:
        resolved = resolve_image(filename, size, cdn_base=self.cdn_base)
        if resolved is None:
            raise MalformedRequest("Filename required")
        key = resolved.object_key

        if await asyncio.to_thread(self.store.exists, key):
            inc_proxy("hit")
            logger.debug("Proxy cache hit | key={}", key)
            return ProxyResult(object_key=key, redirect_url=cdn_url_for_key(key, cdn_base=self.cdn_base))

        logger.info("Image not cached, fetching from TMDB | key={}", key)
        try:
            image = await self.fetcher.fetch(resolved.size, resolved.filename)
        except OriginError:
            inc_proxy("origin_error")
            raise

        try:
            await asyncio.to_thread(
                self.store.put_bytes,
                key,
                image.content,
                content_type=image.content_type,
                cache_control=self.cache_control,
            )
        except Exception:
            inc_store_write(self.store.profile.name, "error")
            raise
        inc_store_write(self.store.profile.name, "ok")
        inc_proxy("miss")
        logger.info("Cached image | key={} | bytes={}", key, len(image.content))

        return ProxyResult(
            object_key=key,
            content=image.content,
            content_type=image.content_type,
            cache_control=self.cache_control,
        )


__all__ = ["ProxyResult", "ImageProxyService", "parse_proxy_path"]
