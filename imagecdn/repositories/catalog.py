from __future__ import annotations

"""
Catalog repository: the `content` records whose image paths get warmed.

Only two operations are needed by the image cache:

- page through records that still have a poster
- rewrite one image field of one record

Both raise `CatalogQueryError` on failure so callers never see driver
exceptions.
"""

import importlib
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from imagecdn.core.exceptions import CatalogQueryError
from imagecdn.db.models.content import Content
from imagecdn.schemas.enums import ImageField


@dataclass(frozen=True)
class CatalogRecord:
    id: str
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None

    def get(self, field: ImageField) -> Optional[str]:
        return getattr(self, ImageField(field).value)


class CatalogRepositoryProtocol(ABC):
    @abstractmethod
    async def list_records_needing_cache(
        self, *, content_ids: Optional[Sequence[str]], limit: int
    ) -> List[CatalogRecord]:
        """Records with a non-null poster, restricted to `content_ids` unless None, ordered by id."""

    @abstractmethod
    async def update_image_path(self, record_id: str, field: ImageField, value: str) -> None:
        """Set one image field of one record."""


class MemoryCatalogRepository(CatalogRepositoryProtocol):
    """In-process catalog for dev and tests."""

    def __init__(self, records: Iterable[CatalogRecord] = ()) -> None:
        self._records: Dict[str, CatalogRecord] = {r.id: r for r in records}
        self.updates: List[tuple[str, str, str]] = []

    def add(self, record: CatalogRecord) -> None:
        self._records[record.id] = record

    def get(self, record_id: str) -> Optional[CatalogRecord]:
        return self._records.get(record_id)

    async def list_records_needing_cache(
        self, *, content_ids: Optional[Sequence[str]], limit: int
    ) -> List[CatalogRecord]:
        wanted = set(content_ids) if content_ids is not None else None
        rows = [
            r
            for r in sorted(self._records.values(), key=lambda r: r.id)
            if r.poster_path is not None and (wanted is None or r.id in wanted)
        ]
        return rows[:limit]

    async def update_image_path(self, record_id: str, field: ImageField, value: str) -> None:
        record = self._records.get(record_id)
        if record is None:
            raise CatalogQueryError("Catalog record not found", details={"id": record_id})
        column = ImageField(field).value
        self._records[record_id] = replace(record, **{column: value})
        self.updates.append((record_id, column, value))


class SqlCatalogRepository(CatalogRepositoryProtocol):
    """SQLAlchemy (async) implementation over the `content` table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def list_records_needing_cache(
        self, *, content_ids: Optional[Sequence[str]], limit: int
    ) -> List[CatalogRecord]:
        stmt = select(Content.id, Content.poster_path, Content.backdrop_path).where(
            Content.poster_path.is_not(None)
        )
        if content_ids is not None:
            stmt = stmt.where(Content.id.in_(list(content_ids)))
        stmt = stmt.order_by(Content.id).limit(limit)
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Catalog query failed | err={}", e)
            raise CatalogQueryError(f"Catalog query failed: {e.__class__.__name__}") from e
        return [CatalogRecord(id=str(r.id), poster_path=r.poster_path, backdrop_path=r.backdrop_path) for r in rows]

    async def update_image_path(self, record_id: str, field: ImageField, value: str) -> None:
        column = getattr(Content, ImageField(field).value)
        stmt = update(Content).where(Content.id == record_id).values({column: value})
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Catalog update failed | id={} | field={} | err={}", record_id, field, e)
            raise CatalogQueryError(
                f"Catalog update failed: {e.__class__.__name__}",
                details={"id": record_id, "field": ImageField(field).value},
            ) from e


def _import_string(path: str) -> Callable[[], CatalogRepositoryProtocol]:
    module_path, _, class_name = path.partition(":")
    if not module_path or not class_name:
        raise ValueError("CATALOG_REPOSITORY_IMPL must be 'module.sub:ClassName'")
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


_memory_singleton: Optional[MemoryCatalogRepository] = None


def get_catalog_repository() -> CatalogRepositoryProtocol:
    """Build the configured catalog repository."""
    global _memory_singleton
    impl_path = os.environ.get("CATALOG_REPOSITORY_IMPL")
    if impl_path:
        return _import_string(impl_path)()

    from imagecdn.core.config import settings

    if settings.CATALOG_BACKEND == "memory":
        if _memory_singleton is None:
            _memory_singleton = MemoryCatalogRepository()
        return _memory_singleton

    from imagecdn.db.session import get_session_maker

    return SqlCatalogRepository(get_session_maker())
