"""Mongo cache store tests that monkeypatch pymongo primitives."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from fx_lens.db import mongo_store as mongo_module


class _DummyCollection:
    def __init__(self) -> None:
        self.docs: Dict[str, Dict[str, Any]] = {}

    def bulk_write(self, operations: List["_DummyUpdateOne"], ordered: bool) -> None:
        assert ordered is False
        for op in operations:
            assert isinstance(op, _DummyUpdateOne)
            self.docs[op.filter["cache_key"]] = dict(op.update["$set"])

    def find(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        docs = list(self.docs.values())
        if "cache_key" in query:
            wanted = set(query["cache_key"]["$in"])
            docs = [doc for doc in docs if doc["cache_key"] in wanted]
        return docs

    def delete_many(self, query: Dict[str, Any]) -> None:
        assert query == {}
        self.docs.clear()


class _DummyUpdateOne:
    def __init__(self, filter: Dict[str, str], update: Dict[str, Dict[str, Any]], *, upsert: bool) -> None:
        assert upsert is True
        self.filter = filter
        self.update = update


class _DummyDatabase(dict):
    def __getitem__(self, name: str) -> _DummyCollection:  # type: ignore[override]
        if name not in self:
            self[name] = _DummyCollection()
        return dict.__getitem__(self, name)


class _DummyClient:
    def __init__(self, url: str) -> None:
        self.url = url
        self.admin = self
        self.closed = False
        self.pinged = False
        self.databases: Dict[str, _DummyDatabase] = {}

    def __getitem__(self, name: str) -> _DummyDatabase:
        return self.databases.setdefault(name, _DummyDatabase())

    def get_default_database(self) -> _DummyDatabase:
        if "/" not in self.url.split("://", 1)[1].rstrip("/"):
            raise TypeError("no default database")
        return self.__getitem__("default")

    def command(self, name: str) -> None:
        assert name == "ping"
        self.pinged = True

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def patch_mongo_client(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mongo_module, "MongoClient", _DummyClient)
    monkeypatch.setattr(mongo_module, "PyMongoError", RuntimeError)
    monkeypatch.setattr(mongo_module, "UpdateOne", _DummyUpdateOne)


def test_mongo_store_roundtrip() -> None:
    store = mongo_module.MongoCacheStore("mongodb://example.com/", database="fx")

    store.set({"rates_EUR": {"rates": {"USD": 1.1}}, "rates_USD": {"rates": {"EUR": 0.9}}})
    store.set({"rates_EUR": {"rates": {"USD": 1.2}}})

    assert store.get(["rates_EUR"]) == {"rates_EUR": {"rates": {"USD": 1.2}}}
    assert set(store.get()) == {"rates_EUR", "rates_USD"}

    store.clear()
    assert store.get() == {}

    store.ping()
    store.close()
    assert store._client.pinged is True
    assert store._client.closed is True


def test_mongo_store_uses_default_database_from_url() -> None:
    store = mongo_module.MongoCacheStore("mongodb://example.com/cache")

    store.set({"k": 1})

    assert "default" in store._client.databases


def test_mongo_store_requires_a_database_name() -> None:
    with pytest.raises(ValueError):
        mongo_module.MongoCacheStore("mongodb://example.com")


def test_set_with_no_entries_is_a_no_op() -> None:
    store = mongo_module.MongoCacheStore("mongodb://example.com/", database="fx")

    store.set({})

    assert store.get() == {}
