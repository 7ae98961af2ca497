# tests/conftest.py
"""
Global test bootstrap
- Deterministic settings (fake storage credentials, memory catalog, no warm delay)
- Makes SlowAPI rate-limiting test-friendly (bypass by default)
- Keeps everything isolated per test run (namespace)
"""

from __future__ import annotations

import os
import random

import pytest

# ──────────────────────────────────────────────────────────────────────────────
# 🌱 Test env (set BEFORE importing the app so the settings singleton sees it)
# ──────────────────────────────────────────────────────────────────────────────
os.environ.setdefault("RATELIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("RATE_LIMIT_TEST_BYPASS", "1")
os.environ.setdefault("RATE_LIMIT_NAMESPACE", f"pytest-{random.getrandbits(32)}")

os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("CDN_DOMAIN", "cdn.test.example")
os.environ.setdefault("CATALOG_BACKEND", "memory")
os.environ.setdefault("CACHE_WARM_DELAY_MS", "0")
os.environ.setdefault("IDRIVE_E2_STORAGE1_ENDPOINT", "https://s3.storage1.test/")
os.environ.setdefault("IDRIVE_E2_STORAGE1_ACCESS_KEY", "test-access-1")
os.environ.setdefault("IDRIVE_E2_STORAGE1_SECRET_KEY", "test-secret-1")
os.environ.setdefault("IDRIVE_E2_STORAGE2_ENDPOINT", "s3.storage2.test")
os.environ.setdefault("IDRIVE_E2_STORAGE2_ACCESS_KEY", "test-access-2")
os.environ.setdefault("IDRIVE_E2_STORAGE2_SECRET_KEY", "test-secret-2")
os.environ.setdefault("IDRIVE_E2_STORAGE2_REGION", "<region>")

# ──────────────────────────────────────────────────────────────────────────────
# 📦 Pull in the rest of the fixtures (fakes, app, client)
# ──────────────────────────────────────────────────────────────────────────────
from tests.fixtures.fakes import *  # noqa: E402,F401,F403
from tests.fixtures.app import *    # noqa: E402,F401,F403


@pytest.fixture(scope="session", autouse=True)
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def ratelimit_on(monkeypatch):
    """Temporarily enforce rate limits in a test that asserts 429s."""
    monkeypatch.setenv("RATE_LIMIT_TEST_BYPASS", "0")
    yield
