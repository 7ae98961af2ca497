# imagecdn/utils/image_urls.py
from __future__ import annotations

"""
🖼️ Image CDN • Image reference resolution
==========================================

Catalog records and clients refer to the same TMDB image in several shapes:

    /abc.jpg                                        (bare TMDB path)
    abc.jpg
    https://image.tmdb.org/t/p/w780/abc.jpg         (origin URL)
    https://cdn.khmerzoon.biz/w500/abc.jpg          (already cached)
    https://example.com/poster.png                  (externally managed)

`classify_image_path` turns a raw value into exactly one tagged
`ImageReference`; every other helper works from that tag instead of sniffing
strings again. `resolve_image` then derives the canonical object key
`{size}/{filename}` that both the on-demand proxy and the bulk warmer use, so
the same image at the same size is never stored twice.

Filenames pass through verbatim: no case folding and no URL decoding.
"""

import re
from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Any, Mapping, Optional, Tuple, Union

from imagecdn.schemas.enums import ImageSize

_ORIGIN_URL_RE = re.compile(r"image\.tmdb\.org/t/p/([^/]+)/(.+)$")
_SIZE_VALUES = {s.value for s in ImageSize}

SizeLike = Union[ImageSize, str]


class ImageReferenceKind(str, PyEnum):
    CDN_URL = "cdn_url"
    ORIGIN_URL = "origin_url"
    EXTERNAL_URL = "external_url"
    BARE = "bare"


@dataclass(frozen=True)
class ImageReference:
    """A raw image value tagged with where it points."""

    kind: ImageReferenceKind
    raw: str

    @property
    def is_external(self) -> bool:
        return self.kind is ImageReferenceKind.EXTERNAL_URL


@dataclass(frozen=True)
class ResolvedImage:
    """Canonical `(size, filename)` pair for one cached object."""

    size: ImageSize
    filename: str

    @property
    def object_key(self) -> str:
        return f"{self.size.value}/{self.filename}"


def _as_size(size: SizeLike) -> ImageSize:
    """Coerce to `ImageSize` (raises ValueError for unknown variants)."""
    return size if isinstance(size, ImageSize) else ImageSize(str(size).strip())


def is_known_size(value: Optional[str]) -> bool:
    return (value or "") in _SIZE_VALUES


def classify_image_path(raw: Optional[str], *, cdn_base: str) -> Optional[ImageReference]:
    """
    Tag a raw image value. Returns None for "no image" (None / "").

    The value is classified exactly as received. A CDN URL is checked before
    the generic `http` test, and a TMDB URL is recognised anywhere in the
    string.
    """
    if raw is None or raw == "":
        return None
    value = str(raw)

    base = cdn_base.rstrip("/")
    if base and (value == base or value.startswith(base + "/")):
        return ImageReference(ImageReferenceKind.CDN_URL, value)
    if _ORIGIN_URL_RE.search(value):
        return ImageReference(ImageReferenceKind.ORIGIN_URL, value)
    if value.startswith("http"):
        return ImageReference(ImageReferenceKind.EXTERNAL_URL, value)
    return ImageReference(ImageReferenceKind.BARE, value)


def _cdn_remainder(ref: ImageReference, *, cdn_base: str) -> str:
    return ref.raw[len(cdn_base.rstrip("/")):].lstrip("/")


def _embedded_size(remainder: str) -> Optional[Tuple[ImageSize, str]]:
    """`(size, filename)` when a CDN remainder already starts with a size segment."""
    head, sep, tail = remainder.partition("/")
    if sep and tail and head in _SIZE_VALUES:
        return ImageSize(head), tail
    return None


def _filename_for(ref: ImageReference, *, cdn_base: str) -> str:
    if ref.kind is ImageReferenceKind.CDN_URL:
        return _cdn_remainder(ref, cdn_base=cdn_base)
    if ref.kind is ImageReferenceKind.ORIGIN_URL:
        match = _ORIGIN_URL_RE.search(ref.raw)
        return match.group(2) if match else ""
    if ref.kind is ImageReferenceKind.BARE:
        return ref.raw[1:] if ref.raw.startswith("/") else ref.raw
    return ""


def resolve_image(raw: Optional[str], size: SizeLike, *, cdn_base: str) -> Optional[ResolvedImage]:
    """
    Resolve a raw value at `size` into its canonical `(size, filename)`.

    Returns None for "no image" and for external URLs (those are not ours to
    cache). A CDN URL whose path starts with a size segment is already
    canonical: its embedded size wins over `size`, so a cached object is never
    re-derived at another size.
    """
    ref = classify_image_path(raw, cdn_base=cdn_base)
    if ref is None or ref.is_external:
        return None
    requested = _as_size(size)
    if ref.kind is ImageReferenceKind.CDN_URL:
        embedded = _embedded_size(_cdn_remainder(ref, cdn_base=cdn_base))
        if embedded is not None:
            return ResolvedImage(size=embedded[0], filename=embedded[1])
    filename = _filename_for(ref, cdn_base=cdn_base)
    if not filename:
        return None
    return ResolvedImage(size=requested, filename=filename)


def resolve_object_key(raw: Optional[str], size: SizeLike, *, cdn_base: str) -> str:
    """`{size}/{filename}` or "" when there is nothing to cache."""
    resolved = resolve_image(raw, size, cdn_base=cdn_base)
    return resolved.object_key if resolved else ""


def cdn_url_for_key(key: str, *, cdn_base: str) -> str:
    return f"{cdn_base.rstrip('/')}/{key.lstrip('/')}"


def tmdb_url_for(size: SizeLike, filename: str, *, origin_base: str) -> str:
    return f"{origin_base.rstrip('/')}/{_as_size(size).value}/{filename.lstrip('/')}"


# ─────────────────────────────────────────────────────────────
# Client-facing URL helpers
# ─────────────────────────────────────────────────────────────
def _default_cdn_base() -> str:
    from imagecdn.core.config import settings

    return settings.cdn_base_url


def _default_origin_base() -> str:
    from imagecdn.core.config import settings

    return settings.TMDB_IMAGE_BASE


def extract_filename(path: Optional[str], *, cdn_base: Optional[str] = None) -> str:
    """
    Filename part of a TMDB path or URL.

    "/z5NgNqn2jxCqETWuXwEePFIhlbK.jpg" -> "z5NgNqn2jxCqETWuXwEePFIhlbK.jpg"
    """
    base = cdn_base or _default_cdn_base()
    ref = classify_image_path(path, cdn_base=base)
    if ref is None:
        return ""
    if ref.is_external:
        return ref.raw
    return _filename_for(ref, cdn_base=base)


def get_cdn_image_url(path: Optional[str], size: SizeLike = ImageSize.W500, *, cdn_base: Optional[str] = None) -> str:
    """
    CDN URL for an image reference.

    External and CDN URLs are returned untouched; anything TMDB-shaped becomes
    `{cdn}/{size}/{filename}`. Empty string means "no image".
    """
    base = cdn_base or _default_cdn_base()
    ref = classify_image_path(path, cdn_base=base)
    if ref is None:
        return ""
    if ref.kind in (ImageReferenceKind.EXTERNAL_URL, ImageReferenceKind.CDN_URL):
        return ref.raw
    key = resolve_object_key(ref.raw, size, cdn_base=base)
    return cdn_url_for_key(key, cdn_base=base) if key else ""


def get_tmdb_image_url(path: Optional[str], size: SizeLike = ImageSize.W500, *, origin_base: Optional[str] = None) -> str:
    """Direct TMDB URL. Absolute URLs are returned as-is."""
    if not path:
        return ""
    if path.startswith("http"):
        return path
    return tmdb_url_for(size, path, origin_base=origin_base or _default_origin_base())


def get_content_image_url(
    content: Union[Mapping[str, Any], Any],
    size: SizeLike = ImageSize.W500,
    *,
    cdn_base: Optional[str] = None,
) -> Optional[str]:
    """Best image for a content item: thumbnail_url > poster_path > backdrop_path."""

    def _get(name: str) -> Optional[str]:
        if isinstance(content, Mapping):
            return content.get(name)
        return getattr(content, name, None)

    thumbnail = _get("thumbnail_url")
    if thumbnail:
        return thumbnail
    for field in ("poster_path", "backdrop_path"):
        value = _get(field)
        if value:
            return get_cdn_image_url(value, size, cdn_base=cdn_base)
    return None


def get_poster_url(path: Optional[str], size: SizeLike = ImageSize.W500, *, cdn_base: Optional[str] = None) -> str:
    return get_cdn_image_url(path, size, cdn_base=cdn_base)


def get_backdrop_url(path: Optional[str], size: SizeLike = ImageSize.ORIGINAL, *, cdn_base: Optional[str] = None) -> str:
    return get_cdn_image_url(path, size, cdn_base=cdn_base)


def get_profile_url(path: Optional[str], size: SizeLike = ImageSize.W200, *, cdn_base: Optional[str] = None) -> str:
    return get_cdn_image_url(path, size, cdn_base=cdn_base)


__all__ = [
    "ImageReferenceKind",
    "ImageReference",
    "ResolvedImage",
    "is_known_size",
    "classify_image_path",
    "resolve_image",
    "resolve_object_key",
    "cdn_url_for_key",
    "tmdb_url_for",
    "extract_filename",
    "get_cdn_image_url",
    "get_tmdb_image_url",
    "get_content_image_url",
    "get_poster_url",
    "get_backdrop_url",
    "get_profile_url",
]
