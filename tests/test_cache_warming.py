# tests/test_cache_warming.py

from typing import List

import pytest
from httpx import AsyncClient

from imagecdn.core.exceptions import CatalogQueryError, ConfigurationError
from imagecdn.repositories.catalog import CatalogRecord, MemoryCatalogRepository
from imagecdn.schemas.enums import ImageField
from imagecdn.schemas.images import CacheRequest
from imagecdn.services.cache_warming_service import CacheWarmingService
from tests.fixtures.fakes import CDN_BASE, FakeObjectStore, FakeTmdb

URL = "/api/v1/cache-tmdb-images"
IMMUTABLE = "public, max-age=31536000, immutable"


def _service(store, tmdb, catalog, *, sleeps: List[float] | None = None, delay=0.0, backfill=True, page_size=100):
    async def _sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    return CacheWarmingService(
        store=store,
        fetcher=tmdb.fetcher(),
        catalog=catalog,
        cdn_base=CDN_BASE,
        cache_control=IMMUTABLE,
        page_size=page_size,
        delay_seconds=delay,
        backfill_on_hit=backfill,
        sleep=_sleep,
    )


def _req(**kw) -> CacheRequest:
    return CacheRequest.model_validate(kw)


# ─────────────────────────────────────────────────────────────
# service behavior
# ─────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_single_poster_is_cached_and_record_rewritten(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/abc.jpg", backdrop_path=None)])
    tmdb.add("/w500/abc.jpg")

    report = await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w500"]))

    assert (report.cached, report.skipped, report.failed) == (1, 0, 0)
    assert "w500/abc.jpg" in cdn_store.objects
    assert cdn_store.objects["w500/abc.jpg"].cache_control == IMMUTABLE
    assert catalog.get("a").poster_path == f"{CDN_BASE}/w500/abc.jpg"
    assert [d.model_dump(exclude_none=True) for d in report.details] == [{"path": "w500/abc.jpg", "status": "cached"}]


@pytest.mark.anyio
async def test_already_cached_is_skipped_without_origin_fetch(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/abc.jpg")])
    cdn_store.seed("w500/abc.jpg")

    report = await _service(cdn_store, tmdb, catalog, backfill=False).run(_req(cacheAll=True, sizes=["w500"]))

    assert (report.cached, report.skipped, report.failed) == (0, 1, 0)
    assert tmdb.requests == []
    assert catalog.get("a").poster_path == "/abc.jpg"
    assert catalog.updates == []


@pytest.mark.anyio
async def test_cache_hit_backfills_primary_field_when_enabled(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/abc.jpg")])
    cdn_store.seed("w500/abc.jpg")

    report = await _service(cdn_store, tmdb, catalog, backfill=True).run(_req(cacheAll=True, sizes=["w500"]))

    assert (report.cached, report.skipped, report.failed) == (0, 1, 0)
    assert tmdb.requests == []
    assert catalog.get("a").poster_path == f"{CDN_BASE}/w500/abc.jpg"


@pytest.mark.anyio
async def test_backfill_is_noop_when_record_already_canonical(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path=f"{CDN_BASE}/w500/abc.jpg")])
    cdn_store.seed("w500/abc.jpg")

    report = await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w500"]))

    assert report.skipped == 1
    assert catalog.updates == []


@pytest.mark.anyio
async def test_only_primary_variant_rewrites_backdrop(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/p.jpg", backdrop_path="/b.jpg")])
    for path in ("/w780/p.jpg", "/w780/b.jpg", "/original/p.jpg", "/original/b.jpg"):
        tmdb.add(path)

    await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w780"]))
    record = catalog.get("a")
    assert record.backdrop_path == "/b.jpg"
    assert record.poster_path == "/p.jpg"

    await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["original"]))
    record = catalog.get("a")
    assert record.backdrop_path == f"{CDN_BASE}/original/b.jpg"
    assert record.poster_path == "/p.jpg"


@pytest.mark.anyio
async def test_field_is_rewritten_at_most_once_per_run(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/abc.jpg")])
    tmdb.add("/w500/abc.jpg")

    await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w500", "w500"]))

    assert catalog.updates == [("a", "poster_path", f"{CDN_BASE}/w500/abc.jpg")]


@pytest.mark.anyio
async def test_origin_failure_is_recorded_and_run_continues(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository(
        [
            CatalogRecord(id="a", poster_path="/gone.jpg"),
            CatalogRecord(id="b", poster_path="/ok.jpg"),
        ]
    )
    tmdb.add("/w500/ok.jpg")

    report = await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w500"]))

    assert (report.cached, report.skipped, report.failed) == (1, 0, 1)
    failed = report.details[0]
    assert failed.path == "w500/gone.jpg"
    assert failed.status.value == "failed"
    assert failed.error == "TMDB returned 404"
    assert catalog.get("a").poster_path == "/gone.jpg"
    assert catalog.get("b").poster_path == f"{CDN_BASE}/w500/ok.jpg"


@pytest.mark.anyio
async def test_store_write_failure_is_item_failure(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/abc.jpg")])
    tmdb.add("/w500/abc.jpg")
    tmdb.add("/original/abc.jpg")
    cdn_store.fail_put_for.add("w500/abc.jpg")

    report = await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w500", "original"]))

    assert (report.cached, report.failed) == (1, 1)
    assert catalog.get("a").poster_path == "/abc.jpg"


@pytest.mark.anyio
async def test_external_urls_are_skipped_once_per_path(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository(
        [CatalogRecord(id="a", poster_path="https://example.com/p.png", backdrop_path="https://example.com/b.png")]
    )

    report = await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w500", "original", "w185"]))

    assert (report.cached, report.skipped, report.failed) == (0, 2, 0)
    assert report.details == []
    assert cdn_store.head_calls == []
    assert tmdb.requests == []


@pytest.mark.anyio
async def test_tmdb_urls_are_cached_under_canonical_key(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="https://image.tmdb.org/t/p/w780/abc.jpg")])
    tmdb.add("/w500/abc.jpg")

    report = await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w500"]))

    assert report.cached == 1
    assert list(cdn_store.objects) == ["w500/abc.jpg"]


@pytest.mark.anyio
async def test_sleeps_between_origin_fetches(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/abc.jpg")])
    tmdb.add("/w500/abc.jpg")
    tmdb.add("/original/abc.jpg")
    cdn_store.seed("w185/abc.jpg")
    sleeps: List[float] = []

    await _service(cdn_store, tmdb, catalog, sleeps=sleeps, delay=0.1).run(
        _req(cacheAll=True, sizes=["w500", "original", "w185"])
    )

    assert sleeps == [0.1, 0.1]


@pytest.mark.anyio
async def test_content_ids_filter_and_order(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository(
        [
            CatalogRecord(id="c", poster_path="/c.jpg"),
            CatalogRecord(id="a", poster_path="/a.jpg"),
            CatalogRecord(id="b", poster_path="/b.jpg"),
            CatalogRecord(id="d", poster_path=None, backdrop_path="/d.jpg"),
        ]
    )
    for name in "abcd":
        tmdb.add(f"/w500/{name}.jpg")

    report = await _service(cdn_store, tmdb, catalog).run(_req(contentIds=["c", "a", "d"], sizes=["w500"]))

    assert [d.path for d in report.details] == ["w500/a.jpg", "w500/c.jpg"]


@pytest.mark.anyio
async def test_page_size_limits_records(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id=f"r{i}", poster_path=f"/{i}.jpg") for i in range(5)])
    for i in range(5):
        tmdb.add(f"/w500/{i}.jpg")

    report = await _service(cdn_store, tmdb, catalog, page_size=3).run(_req(cacheAll=True, sizes=["w500"]))

    assert report.cached == 3


@pytest.mark.anyio
async def test_default_sizes_are_w500_and_original(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/abc.jpg")])
    tmdb.add("/w500/abc.jpg")
    tmdb.add("/original/abc.jpg")

    report = await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True))

    assert sorted(cdn_store.objects) == ["original/abc.jpg", "w500/abc.jpg"]
    assert report.cached == 2


@pytest.mark.anyio
async def test_catalog_query_failure_aborts_run(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    class _Broken(MemoryCatalogRepository):
        async def list_records_needing_cache(self, *, content_ids, limit):
            raise CatalogQueryError("Catalog query failed: OperationalError")

    with pytest.raises(CatalogQueryError):
        await _service(cdn_store, tmdb, _Broken()).run(_req(cacheAll=True))


@pytest.mark.anyio
async def test_configuration_error_aborts_run(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/abc.jpg")])
    cdn_store.fail_head = ConfigurationError("Storage credentials not configured for storage1")

    with pytest.raises(ConfigurationError):
        await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True))


@pytest.mark.anyio
async def test_catalog_update_failure_counts_as_item_failure(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    class _ReadOnly(MemoryCatalogRepository):
        async def update_image_path(self, record_id, field: ImageField, value):
            raise CatalogQueryError("Catalog update failed: ReadOnlyError")

    catalog = _ReadOnly([CatalogRecord(id="a", poster_path="/abc.jpg")])
    tmdb.add("/w500/abc.jpg")

    report = await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w500"]))

    assert report.failed == 1
    assert report.details[0].error == "Catalog update failed: ReadOnlyError"


# ─────────────────────────────────────────────────────────────
# HTTP surface
# ─────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_route_returns_report(async_client: AsyncClient, catalog: MemoryCatalogRepository, tmdb: FakeTmdb):
    catalog.add(CatalogRecord(id="a", poster_path="/abc.jpg"))
    tmdb.add("/w500/abc.jpg")

    r = await async_client.post(URL, json={"cacheAll": True, "sizes": ["w500"]})

    assert r.status_code == 200, r.text
    assert r.json() == {
        "success": True,
        "cached": 1,
        "skipped": 0,
        "failed": 0,
        "details": [{"path": "w500/abc.jpg", "status": "cached"}],
    }


@pytest.mark.anyio
async def test_route_failed_details_include_error(async_client: AsyncClient, catalog: MemoryCatalogRepository):
    catalog.add(CatalogRecord(id="a", poster_path="/gone.jpg"))

    r = await async_client.post(URL, json={"contentIds": ["a"], "sizes": ["w500"]})

    assert r.status_code == 200
    assert r.json()["details"] == [{"path": "w500/gone.jpg", "status": "failed", "error": "TMDB returned 404"}]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "body",
    [{}, {"contentIds": []}, {"cacheAll": False}, {"cacheAll": True, "sizes": ["w9999"]}, {"cacheAll": True, "sizes": []}],
)
async def test_route_rejects_malformed_body(async_client: AsyncClient, tmdb: FakeTmdb, body):
    r = await async_client.post(URL, json=body)

    assert r.status_code == 400, r.text
    assert r.json()["success"] is False
    assert tmdb.requests == []


@pytest.mark.anyio
async def test_route_catalog_failure_is_500(app, async_client: AsyncClient):
    from imagecdn.core.dependencies import get_catalog

    class _Broken(MemoryCatalogRepository):
        async def list_records_needing_cache(self, *, content_ids, limit):
            raise CatalogQueryError("Catalog query failed: OperationalError")

    app.dependency_overrides[get_catalog] = lambda: _Broken()

    r = await async_client.post(URL, json={"cacheAll": True})

    assert r.status_code == 500
    assert r.json()["success"] is False
    assert r.json()["error"] == "Catalog query failed: OperationalError"


@pytest.mark.anyio
async def test_rerun_over_rewritten_records_fetches_nothing(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path="/abc.jpg", backdrop_path="/bg.jpg")])
    for path in ("/w500/abc.jpg", "/original/abc.jpg", "/w500/bg.jpg", "/original/bg.jpg"):
        tmdb.add(path)
    service = _service(cdn_store, tmdb, catalog)

    first = await service.run(_req(cacheAll=True, sizes=["w500", "original"]))
    assert first.cached == 4
    record = catalog.get("a")
    assert record.poster_path == f"{CDN_BASE}/w500/abc.jpg"
    assert record.backdrop_path == f"{CDN_BASE}/original/bg.jpg"
    fetched = list(tmdb.requests)
    updates = list(catalog.updates)

    second = await service.run(_req(cacheAll=True, sizes=["w500", "original", "w185"]))

    assert (second.cached, second.skipped, second.failed) == (0, 2, 0)
    assert [d.path for d in second.details] == ["w500/abc.jpg", "original/bg.jpg"]
    assert tmdb.requests == fetched
    assert catalog.updates == updates
    assert sorted(cdn_store.objects) == ["original/abc.jpg", "original/bg.jpg", "w500/abc.jpg", "w500/bg.jpg"]


@pytest.mark.anyio
async def test_canonical_cdn_poster_is_not_rederived_at_other_sizes(cdn_store: FakeObjectStore, tmdb: FakeTmdb):
    catalog = MemoryCatalogRepository([CatalogRecord(id="a", poster_path=f"{CDN_BASE}/w500/abc.jpg")])
    cdn_store.seed("w500/abc.jpg")

    report = await _service(cdn_store, tmdb, catalog).run(_req(cacheAll=True, sizes=["w500", "original"]))

    assert (report.cached, report.skipped, report.failed) == (0, 1, 0)
    assert tmdb.requests == []
    assert cdn_store.put_calls == []
    assert catalog.updates == []
