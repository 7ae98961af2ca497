# imagecdn/utils/aws.py
from __future__ import annotations

"""
🧊 Image CDN • S3 Utilities
===========================

Thin boto3 wrapper for the S3-compatible buckets that back the image CDN
(iDrive E2 in production, anything S3-compatible elsewhere).

🎯 Goals
--------
- Built from a resolved `StorageProfile` (endpoint host, region, keys)
- Path-style addressing + SigV4 (required by most S3-compatible vendors)
- Explicit timeouts + bounded retries
- Key normalization (no leading slash, no `..`)
- A HEAD that distinguishes "not found" from "store is broken"
- Zero secret leakage in logs

🔗 Contract
-----------
- Class: `S3Client`
- Methods: `S3Client.exists(...)`, `S3Client.put_bytes(...)`,
           `S3Client.cdn_url(...)`, `S3Client.object_url(...)`

Blocking boto3 calls are run with `asyncio.to_thread` by the async services.
"""

from typing import Any, Dict, Optional
import logging

import boto3
import botocore
from botocore.config import Config as BotoConfig

from imagecdn.core.config import StorageProfile
from imagecdn.core.exceptions import StoreTransportError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _normalize_key(key: str) -> str:
    """
    Validate an S3 object key.

    Only the leading `/` is removed. Everything else (spaces, `%`, unicode,
    `a..jpg`) is kept byte for byte.

    Raises
    ------
    StoreTransportError
        If the key is empty or has a `..` path segment.
    """
    k = str(key or "").lstrip("/")
    if not k:
        raise StoreTransportError("Invalid storage key: empty")
    if ".." in k.split("/"):
        raise StoreTransportError("Invalid storage key: path traversal detected", key=k)
    return k


class S3Client:
    """
    High-level S3 wrapper bound to one storage profile and one bucket.

    Parameters
    ----------
    profile : StorageProfile
        Resolved endpoint/credentials (see `Settings.storage_profile`).
    bucket : str
        Destination bucket (e.g. `images`).
    cdn_base_url : str | None
        If set, `cdn_url()` joins this with normalized keys for public links.
    client : Any | None
        Pre-built boto3 client (tests inject a `MagicMock`).

    Notes
    -----
    * Retries/Timeouts:
        - Bounded retry policy (3 attempts) and short connect timeout help fail fast.
    """

    def __init__(
        self,
        profile: StorageProfile,
        bucket: str,
        *,
        cdn_base_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        if not bucket:
            raise StoreTransportError("Bucket name is required")
        self.profile = profile
        self.bucket = bucket
        self.region = profile.region
        self._cdn_base = (cdn_base_url or "").rstrip("/")

        if client is None:
            cfg = BotoConfig(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "standard"},
                connect_timeout=3,
                read_timeout=10,
                s3={"addressing_style": "path"},
            )
            try:
                client = boto3.client(
                    "s3",
                    endpoint_url=profile.endpoint_url,
                    region_name=profile.region,
                    aws_access_key_id=profile.access_key_id,
                    aws_secret_access_key=profile.secret_access_key.get_secret_value(),
                    config=cfg,
                )
            except Exception as e:  # pragma: no cover
                raise StoreTransportError(f"Failed to create S3 client: {e}") from e
        self.client = client

        self._repr = f"S3Client(profile={profile.name}, bucket={bucket}, region={self.region})"

    # ────────────────────────────────────────────────────────────────────────
    # 🔎 Existence
    # ────────────────────────────────────────────────────────────────────────

    def exists(self, key: str) -> bool:
        """
        HEAD the object.

        Returns False for the "not found" family (404 / NoSuchKey / NotFound).

        Raises
        ------
        StoreTransportError
            Any other failure (auth, network, 5xx). The caller must not treat
            a broken store as a cache miss.
        """
        k = _normalize_key(key)
        try:
            self.client.head_object(Bucket=self.bucket, Key=k)
            return True
        except botocore.exceptions.ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return False
            raise StoreTransportError(f"Failed to check object: {e}", key=k) from e
        except StoreTransportError:
            raise
        except Exception as e:
            raise StoreTransportError(f"Failed to check object: {e}", key=k) from e

    # ────────────────────────────────────────────────────────────────────────
    # 🚀 Writes
    # ────────────────────────────────────────────────────────────────────────

    def put_bytes(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> str:
        """
        Upload a small payload from the server and return the normalized key.

        Raises
        ------
        StoreTransportError
            On upload failure or invalid key.
        """
        k = _normalize_key(key)
        args: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": k,
            "Body": data,
            "ContentType": content_type,
        }
        if cache_control:
            args["CacheControl"] = cache_control

        try:
            self.client.put_object(**args)
        except Exception as e:
            raise StoreTransportError(f"Failed to upload object: {e}", key=k) from e
        logger.debug("put_object ok bucket=%s key=%s bytes=%d", self.bucket, k, len(data))
        return k

    # ────────────────────────────────────────────────────────────────────────
    # 🌐 Public URL helpers
    # ────────────────────────────────────────────────────────────────────────

    def cdn_url(self, key: str) -> Optional[str]:
        """CDN URL for a normalized key, or None when no CDN base is configured."""
        if not self._cdn_base:
            return None
        return f"{self._cdn_base}/{_normalize_key(key)}"

    def object_url(self, key: str) -> str:
        """Path-style URL on the storage endpoint: `https://{host}/{bucket}/{key}`."""
        return f"https://{self.profile.endpoint_host}/{self.bucket}/{_normalize_key(key)}"

    def __repr__(self) -> str:  # pragma: no cover
        return self._repr


__all__ = ["S3Client"]
