from __future__ import annotations

"""Prometheus counters for the image cache.

Call sites use the small `inc_*` / `observe_*` helpers so label names stay in
one place. Everything is exposed by the `/metrics` endpoint.
"""

from prometheus_client import Counter, Histogram

proxy_requests_total = Counter(
    "image_proxy_requests_total",
    "On-demand proxy outcomes",
    labelnames=("result",),  # hit | miss | origin_error | bad_request | error
)
origin_fetches_total = Counter(
    "image_origin_fetches_total",
    "Origin (TMDB) fetches",
    labelnames=("result",),  # ok | not_found | error
)
origin_fetch_latency = Histogram(
    "image_origin_fetch_seconds",
    "Latency of origin image fetches",
    labelnames=("result",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
store_writes_total = Counter(
    "image_store_writes_total",
    "Object-store writes",
    labelnames=("location", "result"),
)
warm_items_total = Counter(
    "image_cache_warm_items_total",
    "Bulk cache-warming item outcomes",
    labelnames=("status",),  # cached | skipped | failed
)
catalog_rewrites_total = Counter(
    "image_catalog_rewrites_total",
    "Catalog image paths rewritten to CDN URLs",
    labelnames=("field",),
)


def inc_proxy(result: str) -> None:
    proxy_requests_total.labels(result=result).inc()


def inc_origin_fetch(result: str) -> None:
    origin_fetches_total.labels(result=result).inc()


def observe_origin_seconds(result: str, seconds: float) -> None:
    origin_fetch_latency.labels(result=result).observe(seconds)


def inc_store_write(location: str, result: str) -> None:
    store_writes_total.labels(location=location, result=result).inc()


def inc_warm_item(status: str) -> None:
    warm_items_total.labels(status=status).inc()


def inc_catalog_rewrite(field: str) -> None:
    catalog_rewrites_total.labels(field=field).inc()


__all__ = [
    "inc_proxy",
    "inc_origin_fetch",
    "observe_origin_seconds",
    "inc_store_write",
    "inc_warm_item",
    "inc_catalog_rewrite",
]
