"""MongoDB cache store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from fx_lens.db.base_store import CacheStore
from fx_lens.utils.logger import get_logger

try:  # pragma: no cover - optional dependency
    from pymongo import MongoClient, UpdateOne
    from pymongo.collection import Collection
    from pymongo.errors import ConfigurationError, PyMongoError
except ModuleNotFoundError:  # pragma: no cover - handled dynamically
    MongoClient = None  # type: ignore[assignment]
    UpdateOne = None  # type: ignore[assignment]
    Collection = None  # type: ignore[assignment]
    PyMongoError = Exception  # type: ignore[assignment]
    ConfigurationError = Exception  # type: ignore[assignment]

LOGGER = get_logger(__name__)

COLLECTION_NAME = "fx_lens_cache"


class MongoCacheStore(CacheStore):
    """Store each cache entry as one document keyed by ``cache_key``."""

    def __init__(self, url: str, *, database: str | None = None) -> None:
        if MongoClient is None:  # pragma: no cover - optional dependency
            raise ModuleNotFoundError("pymongo is required for MongoDB cache stores")
        self.url = url
        self._client = MongoClient(url)
        if database is None:
            try:
                db = self._client.get_default_database()
            except (ConfigurationError, TypeError) as exc:
                raise ValueError("MongoDB connection URI must include a database name") from exc
        else:
            db = self._client[database]
        self._collection: Collection = db[COLLECTION_NAME]

    def get(self, keys: Iterable[str] | None = None) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if keys is not None:
            query["cache_key"] = {"$in": list(keys)}
        try:
            docs = self._collection.find(query)
            return {doc["cache_key"]: doc["value"] for doc in docs}
        except PyMongoError as exc:  # pragma: no cover - error path
            raise RuntimeError(f"Failed to read MongoDB cache: {exc}") from exc

    def set(self, entries: Mapping[str, Any]) -> None:
        if not entries:
            return
        now = datetime.now(timezone.utc)
        operations = [
            UpdateOne(
                {"cache_key": key},
                {"$set": {"cache_key": key, "value": value, "updated_at": now}},
                upsert=True,
            )
            for key, value in entries.items()
        ]
        try:
            self._collection.bulk_write(operations, ordered=False)
        except PyMongoError as exc:  # pragma: no cover - error path
            raise RuntimeError(f"Failed to write MongoDB cache: {exc}") from exc

    def clear(self) -> None:
        try:
            self._collection.delete_many({})
        except PyMongoError as exc:  # pragma: no cover - error path
            raise RuntimeError(f"Failed to clear MongoDB cache: {exc}") from exc

    def ping(self) -> None:
        self._client.admin.command("ping")

    def close(self) -> None:  # pragma: no cover - trivial cleanup
        self._client.close()


__all__ = ["MongoCacheStore"]
