"""SQLAlchemy-backed cache store (SQLite, MySQL, Postgres)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from sqlalchemy import Column, DateTime, String, Text, create_engine, delete, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from fx_lens.db.base_store import CacheStore
from fx_lens.utils.logger import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class _CacheEntry(Base):
    __tablename__ = "fx_lens_cache"

    cache_key = Column(String(64), primary_key=True)
    payload = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)


def sqlite_url(db_path: str | Path) -> str:
    return f"sqlite:///{Path(db_path).expanduser().resolve()}"


class SQLCacheStore(CacheStore):
    """Persist cache entries as JSON documents in a single relational table."""

    def __init__(self, url: str, *, engine: Engine | None = None) -> None:
        self.url = url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        if url.startswith("sqlite:///") and not url.startswith("sqlite:///:memory:"):
            Path(url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
        self.engine: Engine = engine or create_engine(
            url, echo=False, future=True, connect_args=connect_args
        )
        Base.metadata.create_all(self.engine)
        self._SessionFactory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, future=True
        )

    @classmethod
    def for_sqlite(cls, db_path: str | Path) -> "SQLCacheStore":
        return cls(sqlite_url(db_path))

    def get(self, keys: Iterable[str] | None = None) -> dict[str, Any]:
        with self._SessionFactory() as session:
            stmt = select(_CacheEntry)
            if keys is not None:
                wanted = list(keys)
                if not wanted:
                    return {}
                stmt = stmt.where(_CacheEntry.cache_key.in_(wanted))
            values: dict[str, Any] = {}
            for entry in session.execute(stmt).scalars():
                try:
                    values[str(entry.cache_key)] = json.loads(str(entry.payload))
                except ValueError:
                    LOGGER.warning("Discarding corrupt cache entry %s", entry.cache_key)
            return values

    def set(self, entries: Mapping[str, Any]) -> None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        with self._SessionFactory() as session:
            for key, value in entries.items():
                payload = json.dumps(value, sort_keys=True)
                existing = session.get(_CacheEntry, key)
                if existing is None:
                    session.add(_CacheEntry(cache_key=key, payload=payload, updated_at=now))
                else:
                    setattr(existing, "payload", payload)
                    setattr(existing, "updated_at", now)
            session.commit()

    def clear(self) -> None:
        with self._SessionFactory() as session:
            session.execute(delete(_CacheEntry))
            session.commit()

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def close(self) -> None:  # pragma: no cover - trivial
        self.engine.dispose()

    def __enter__(self) -> "SQLCacheStore":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


__all__ = ["SQLCacheStore", "sqlite_url"]
