# imagecdn/db/base_class.py
from __future__ import annotations

"""
# Image CDN • SQLAlchemy Base

SQLAlchemy 2.0 declarative **Base** with global naming conventions and a
compact `__repr__`. The catalog tables are owned by the main application;
models here map only the columns the image cache reads and writes.
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Global declarative base for catalog models."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    def __repr__(self) -> str:  # pragma: no cover (repr convenience)
        ident = getattr(self, "id", None)
        return f"{self.__class__.__name__}(id={ident!r})"


__all__ = ["Base", "NAMING_CONVENTION"]
