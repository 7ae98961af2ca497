# tests/test_upload_route.py

from typing import Dict

import pytest
from httpx import AsyncClient

from tests.fixtures.fakes import PNG_BYTES, FakeObjectStore, FakeTmdb

URL = "/api/v1/upload-tmdb-image"
SOURCE = "https://image.tmdb.org/t/p/original/xyz.png"


def _body(**overrides):
    body = {"imageUrl": SOURCE, "fileName": "posters/xyz.png", "bucket": "media"}
    body.update(overrides)
    return body


@pytest.mark.anyio
async def test_upload_copies_image_into_bucket(
    async_client: AsyncClient, tmdb: FakeTmdb, upload_stores: Dict[str, FakeObjectStore]
):
    tmdb.add("/original/xyz.png", body=PNG_BYTES, content_type="image/png")

    r = await async_client.post(URL, json=_body())

    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "url": "https://s3.storage2.test/media/posters/xyz.png", "cached": False}
    stored = upload_stores["media"].objects["posters/xyz.png"]
    assert stored.data == PNG_BYTES
    assert stored.content_type == "image/png"
    assert tmdb.requests == [SOURCE]


@pytest.mark.anyio
async def test_upload_is_idempotent_by_file_name(
    async_client: AsyncClient, tmdb: FakeTmdb, upload_stores: Dict[str, FakeObjectStore]
):
    tmdb.add("/original/xyz.png", body=PNG_BYTES, content_type="image/png")

    first = await async_client.post(URL, json=_body())
    second = await async_client.post(URL, json=_body(imageUrl="https://example.com/other.png"))

    assert first.json()["cached"] is False
    assert second.status_code == 200
    assert second.json() == {"success": True, "url": "https://s3.storage2.test/media/posters/xyz.png", "cached": True}
    assert tmdb.requests == [SOURCE]
    assert upload_stores["media"].put_calls == ["posters/xyz.png"]


@pytest.mark.anyio
async def test_upload_targets_requested_bucket(
    async_client: AsyncClient, tmdb: FakeTmdb, upload_stores: Dict[str, FakeObjectStore]
):
    tmdb.add("/original/xyz.png", body=PNG_BYTES, content_type="image/png")

    r = await async_client.post(URL, json=_body(bucket="archive"))

    assert r.json()["url"] == "https://s3.storage2.test/archive/posters/xyz.png"
    assert "posters/xyz.png" in upload_stores["archive"].objects
    assert "media" not in upload_stores


@pytest.mark.anyio
@pytest.mark.parametrize("missing", ["imageUrl", "fileName", "bucket"])
async def test_upload_missing_field_is_400(async_client: AsyncClient, tmdb: FakeTmdb, missing: str):
    body = _body()
    body.pop(missing)

    r = await async_client.post(URL, json=body)

    assert r.status_code == 400
    assert r.json()["success"] is False
    assert tmdb.requests == []


@pytest.mark.anyio
async def test_upload_empty_field_is_400(async_client: AsyncClient):
    r = await async_client.post(URL, json=_body(fileName=""))

    assert r.status_code == 400


@pytest.mark.anyio
async def test_upload_origin_error_status_is_502(
    async_client: AsyncClient, tmdb: FakeTmdb, upload_stores: Dict[str, FakeObjectStore]
):
    r = await async_client.post(URL, json=_body(imageUrl="https://image.tmdb.org/t/p/original/missing.png"))

    assert r.status_code == 502
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "Failed to fetch image from origin: HTTP 404"
    assert upload_stores["media"].put_calls == []


@pytest.mark.anyio
async def test_upload_origin_timeout_is_502(async_client: AsyncClient, tmdb: FakeTmdb):
    tmdb.raise_for.add(SOURCE)

    r = await async_client.post(URL, json=_body())

    assert r.status_code == 502
    assert r.json()["error"].startswith("Failed to fetch image from origin")


@pytest.mark.anyio
async def test_upload_store_failure_is_500(
    async_client: AsyncClient, tmdb: FakeTmdb, upload_stores: Dict[str, FakeObjectStore]
):
    tmdb.add("/original/xyz.png", body=PNG_BYTES, content_type="image/png")
    store = FakeObjectStore(name="storage2", bucket="media", endpoint_host="s3.storage2.test")
    store.fail_put_for.add("posters/xyz.png")
    upload_stores["media"] = store

    r = await async_client.post(URL, json=_body())

    assert r.status_code == 500
    assert r.json()["details"] == {"key": "posters/xyz.png"}
