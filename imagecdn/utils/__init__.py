"""Utility helpers for the image CDN.

Submodules:
- image_urls: classify and resolve image references into object keys
- aws: boto3 wrapper for the S3-compatible buckets
"""

__all__: list[str] = []
