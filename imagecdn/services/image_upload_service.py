from __future__ import annotations

"""
Direct upload: copy an arbitrary image URL into a named bucket on the
`storage2` profile, under a caller-chosen object name.

Unlike the TMDB proxy the returned URL points at the storage endpoint
(`https://{endpoint}/{bucket}/{fileName}`), not at the CDN domain.
"""

import asyncio
from typing import Callable

from loguru import logger

from imagecdn.core.exceptions import OriginFetchError, OriginNotFound
from imagecdn.core.metrics import inc_store_write
from imagecdn.schemas.images import UploadRequest, UploadResult
from imagecdn.services.origin_fetcher import OriginFetcher
from imagecdn.utils.aws import S3Client

StoreFactory = Callable[[str], S3Client]


class ImageUploadService:
    def __init__(self, *, store_for_bucket: StoreFactory, fetcher: OriginFetcher, cache_control: str) -> None:
        self._store_for_bucket = store_for_bucket
        self.fetcher = fetcher
        self.cache_control = cache_control

    async def upload(self, req: UploadRequest) -> UploadResult:
        store = self._store_for_bucket(req.bucket)
        url = store.object_url(req.file_name)

        if await asyncio.to_thread(store.exists, req.file_name):
            logger.debug("Upload skipped, object exists | bucket={} | key={}", req.bucket, req.file_name)
            return UploadResult(url=url, cached=True)

        try:
            image = await self.fetcher.fetch_url(req.image_url)
        except OriginNotFound as e:
            raise OriginFetchError(url=req.image_url, reason=f"HTTP {e.origin_status}") from e

        try:
            await asyncio.to_thread(
                store.put_bytes,
                req.file_name,
                image.content,
                content_type=image.content_type,
                cache_control=self.cache_control,
            )
        except Exception:
            inc_store_write(store.profile.name, "error")
            raise
        inc_store_write(store.profile.name, "ok")
        logger.info("Uploaded image | bucket={} | key={} | bytes={}", req.bucket, req.file_name, len(image.content))
        return UploadResult(url=url, cached=False)


__all__ = ["ImageUploadService"]
