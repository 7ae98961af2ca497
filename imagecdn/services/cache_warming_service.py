from __future__ import annotations

"""
Bulk cache warming.

Pulls one page of catalog records that still have a poster and, for every
image field and every requested size, runs the same resolve / HEAD / fetch /
put sequence as the on-demand proxy. A successful cache of a field's primary
size (poster → w500, backdrop → original) rewrites that field on the record
to the CDN URL, at most once per field per run.

A single item failing never aborts the run: it is recorded as `failed` and
the loop moves on. Only a configuration error or the initial catalog query
failure propagates.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, Set

from loguru import logger

from imagecdn.core.exceptions import AppException, ConfigurationError
from imagecdn.core.metrics import inc_catalog_rewrite, inc_store_write, inc_warm_item
from imagecdn.repositories.catalog import CatalogRecord, CatalogRepositoryProtocol
from imagecdn.schemas.enums import PRIMARY_SIZE, CacheStatus, ImageField, ImageSize
from imagecdn.schemas.images import CacheRequest, CacheRunReport
from imagecdn.services.origin_fetcher import OriginFetcher
from imagecdn.utils.aws import S3Client
from imagecdn.utils.image_urls import ResolvedImage, cdn_url_for_key, classify_image_path, resolve_image

SleepFn = Callable[[float], Awaitable[None]]

_FIELDS = (ImageField.POSTER, ImageField.BACKDROP)


class CacheWarmingService:
    def __init__(
        self,
        *,
        store: S3Client,
        fetcher: OriginFetcher,
        catalog: CatalogRepositoryProtocol,
        cdn_base: str,
        cache_control: str,
        default_sizes: Sequence[ImageSize | str] = (ImageSize.W500, ImageSize.ORIGINAL),
        page_size: int = 100,
        delay_seconds: float = 0.1,
        backfill_on_hit: bool = True,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.catalog = catalog
        self.cdn_base = cdn_base
        self.cache_control = cache_control
        self.default_sizes = [ImageSize(s) for s in default_sizes]
        self.page_size = page_size
        self.delay_seconds = delay_seconds
        self.backfill_on_hit = backfill_on_hit
        self._sleep = sleep

    async def run(self, request: CacheRequest) -> CacheRunReport:
        content_ids = None if request.cache_all else list(request.content_ids or [])
        sizes: List[ImageSize] = list(request.sizes or self.default_sizes)

        records = await self.catalog.list_records_needing_cache(content_ids=content_ids, limit=self.page_size)
        logger.info(
            "Cache warm started | records={} | sizes={} | cache_all={}",
            len(records), [s.value for s in sizes], request.cache_all,
        )

        report = CacheRunReport()
        for record in records:
            for field in _FIELDS:
                await self._warm_field(report, record, field, sizes)

        logger.info(
            "Cache complete: {} cached, {} skipped, {} failed",
            report.cached, report.skipped, report.failed,
        )
        return report

    async def _warm_field(
        self,
        report: CacheRunReport,
        record: CatalogRecord,
        field: ImageField,
        sizes: Sequence[ImageSize],
    ) -> None:
        raw = record.get(field)
        ref = classify_image_path(raw, cdn_base=self.cdn_base)
        if ref is None:
            return
        if ref.is_external:
            # Externally managed image: counted once, no detail entry.
            report.skipped += 1
            inc_warm_item(CacheStatus.SKIPPED.value)
            return

        rewritten = False
        seen: Set[str] = set()
        for size in sizes:
            resolved = resolve_image(raw, size, cdn_base=self.cdn_base)
            if resolved is None:
                report.record(str(raw), CacheStatus.FAILED, "Unresolvable image path")
                inc_warm_item(CacheStatus.FAILED.value)
                return
            key = resolved.object_key
            if key in seen:
                # Canonical CDN URLs resolve to their embedded size for every request.
                continue
            seen.add(key)
            is_primary = PRIMARY_SIZE[field] == size
            try:
                status = await self._warm_one(resolved)
                if is_primary and not rewritten and (status is CacheStatus.CACHED or self.backfill_on_hit):
                    await self._rewrite(record, field, raw, key)
                    rewritten = True
            except ConfigurationError:
                raise
            except AppException as e:
                self._fail(report, key, e.message)
                continue
            except Exception as e:
                logger.opt(exception=e).warning("Cache warm item failed | key={}", key)
                self._fail(report, key, str(e) or e.__class__.__name__)
                continue

            report.record(key, status)
            inc_warm_item(status.value)
            if status is CacheStatus.CACHED and self.delay_seconds > 0:
                # Bound the TMDB request rate.
                await self._sleep(self.delay_seconds)

    async def _warm_one(self, resolved: ResolvedImage) -> CacheStatus:
        key = resolved.object_key
        if await asyncio.to_thread(self.store.exists, key):
            return CacheStatus.SKIPPED

        image = await self.fetcher.fetch(resolved.size, resolved.filename)
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
        logger.debug("Cached image | key={}", key)
        return CacheStatus.CACHED

    async def _rewrite(self, record: CatalogRecord, field: ImageField, raw: Optional[str], key: str) -> None:
        cdn_url = cdn_url_for_key(key, cdn_base=self.cdn_base)
        if raw == cdn_url:
            return
        await self.catalog.update_image_path(record.id, field, cdn_url)
        inc_catalog_rewrite(field.value)
        logger.info("Catalog rewrite | id={} | field={} | url={}", record.id, field.value, cdn_url)

    @staticmethod
    def _fail(report: CacheRunReport, key: str, error: str) -> None:
        report.record(key, CacheStatus.FAILED, error)
        inc_warm_item(CacheStatus.FAILED.value)


__all__ = ["CacheWarmingService"]
