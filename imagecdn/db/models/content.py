from __future__ import annotations

"""
Catalog `content` row (image columns only).

`poster_path` / `backdrop_path` hold whatever the catalog stored: a bare TMDB
path (`/abc.jpg`), a TMDB URL, an external URL, or the CDN URL written back by
the bulk warmer.
"""

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from imagecdn.db.base_class import Base


class Content(Base):
    __tablename__ = "content"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    poster_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    backdrop_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
