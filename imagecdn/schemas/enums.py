from __future__ import annotations

"""
Central enum definitions used across the image CDN.

Design notes
------------
• All enums subclass `str, PyEnum` for JSON-friendly serialization.
• VALUE STRINGS are **stable**: `ImageSize` values are object-key prefixes and
  public URL segments, renaming one orphans every cached object under it.
"""

from enum import Enum as PyEnum


class ImageSize(str, PyEnum):
    """TMDB size variants. The value is the first segment of the object key."""
    W185 = "w185"
    W200 = "w200"
    W300 = "w300"
    W500 = "w500"
    W780 = "w780"
    ORIGINAL = "original"


class ImageField(str, PyEnum):
    """Catalog record fields that hold image references."""
    POSTER = "poster_path"
    BACKDROP = "backdrop_path"


# Size whose successful cache rewrites the catalog field to the CDN URL.
PRIMARY_SIZE = {
    ImageField.POSTER: ImageSize.W500,
    ImageField.BACKDROP: ImageSize.ORIGINAL,
}


class CacheStatus(str, PyEnum):
    """Per-object outcome reported by a bulk warming run."""
    CACHED = "cached"
    SKIPPED = "skipped"
    FAILED = "failed"


__all__ = ["ImageSize", "ImageField", "PRIMARY_SIZE", "CacheStatus"]
