"""Image CDN: TMDB image caching and proxy service."""

__version__ = "1.0.0"
