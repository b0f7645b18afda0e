"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths, required settings for app.config,
    and an in-memory stand-in for the Motor collections the services touch.
"""

from __future__ import annotations

import copy
import os
import sys
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]

if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production-0123456789")

from app.utils import ensure_utc  # noqa: E402


def _norm(value: Any) -> Any:
    return ensure_utc(value) if isinstance(value, datetime) else value


def _field_matches(actual: Any, cond: Any) -> bool:
    if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
        for op, expected in cond.items():
            a, e = _norm(actual), _norm(expected)
            if op == "$in" and a not in [_norm(x) for x in expected]:
                return False
            if op == "$ne" and a == e:
                return False
            if op == "$gt" and not (a is not None and a > e):
                return False
            if op == "$gte" and not (a is not None and a >= e):
                return False
            if op == "$lt" and not (a is not None and a < e):
                return False
            if op == "$exists" and (actual is not None) != bool(expected):
                return False
        return True
    return _norm(actual) == _norm(cond)


def matches(doc: dict, query: dict | None) -> bool:
    for key, cond in (query or {}).items():
        if not _field_matches(doc.get(key), cond):
            return False
    return True


class FakeCursor:
    def __init__(self, docs: list[dict]):
        self._docs = list(docs)

    def sort(self, field: str, direction: int = 1):
        self._docs.sort(key=lambda d: _norm(d.get(field)), reverse=direction == -1)
        return self

    def limit(self, n: int):
        self._docs = self._docs[:n]
        return self

    async def to_list(self, length: int | None = None):
        if length is None:
            return list(self._docs)
        return list(self._docs)[:length]


class FakeCollection:
    """Just enough of AsyncIOMotorCollection for the service layer."""

    def __init__(self, docs: list[dict] | None = None, unique: tuple[str, ...] | None = None):
        self.docs: list[dict] = [dict(d) for d in (docs or [])]
        for doc in self.docs:
            doc.setdefault("_id", ObjectId())
        self.unique = unique
        self.update_calls: list[tuple[dict, dict]] = []

    def _check_unique(self, doc: dict) -> None:
        if not self.unique:
            return
        key = tuple(doc.get(f) for f in self.unique)
        for existing in self.docs:
            if tuple(existing.get(f) for f in self.unique) == key:
                raise DuplicateKeyError("E11000 duplicate key error")

    @staticmethod
    def _project(doc: dict, projection: dict | None) -> dict:
        if not projection:
            return copy.deepcopy(doc)
        out = {k: copy.deepcopy(doc[k]) for k, v in projection.items() if v and k in doc}
        if projection.get("_id", 1) and "_id" in doc:
            out["_id"] = doc["_id"]
        return out

    async def insert_one(self, doc: dict):
        self._check_unique(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query: dict | None = None, projection: dict | None = None):
        for doc in self.docs:
            if matches(doc, query):
                return self._project(doc, projection)
        return None

    def find(self, query: dict | None = None, projection: dict | None = None):
        return FakeCursor([self._project(d, projection) for d in self.docs if matches(d, query)])

    async def delete_one(self, query: dict):
        for i, doc in enumerate(self.docs):
            if matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query: dict):
        before = len(self.docs)
        self.docs = [d for d in self.docs if not matches(d, query)]
        return SimpleNamespace(deleted_count=before - len(self.docs))

    @staticmethod
    def _apply(doc: dict, update: dict) -> None:
        for field, value in update.get("$set", {}).items():
            doc[field] = value
        for field, value in update.get("$addToSet", {}).items():
            doc.setdefault(field, [])
            if value not in doc[field]:
                doc[field].append(value)
        for field, value in update.get("$pull", {}).items():
            doc[field] = [v for v in doc.get(field, []) if v != value]

    async def update_one(self, query: dict, update: dict, upsert: bool = False):
        self.update_calls.append((query, update))
        for doc in self.docs:
            if matches(doc, query):
                self._apply(doc, update)
                return SimpleNamespace(matched_count=1, modified_count=1)
        if upsert:
            doc = {k: v for k, v in query.items() if not isinstance(v, dict)}
            doc.update(update.get("$setOnInsert", {}))
            self._apply(doc, update)
            await self.insert_one(doc)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def find_one_and_update(self, query: dict, update: dict, return_document=None):
        self.update_calls.append((query, update))
        for doc in self.docs:
            if matches(doc, query):
                self._apply(doc, update)
                return copy.deepcopy(doc)
        return None

    def aggregate(self, pipeline: list[dict]):
        docs = [copy.deepcopy(d) for d in self.docs]
        for stage in pipeline:
            if "$match" in stage:
                docs = [d for d in docs if matches(d, stage["$match"])]
            elif "$sort" in stage:
                for field, direction in reversed(list(stage["$sort"].items())):
                    docs.sort(key=lambda d: _norm(d.get(field)), reverse=direction == -1)
            elif "$limit" in stage:
                docs = docs[: stage["$limit"]]
        return FakeCursor(docs)


@pytest.fixture
def fake_db(monkeypatch):
    """Install a SimpleNamespace of FakeCollections as ``app.database.db``."""
    import app.database as _db

    def _install(**collections: FakeCollection) -> SimpleNamespace:
        collections.setdefault("audit_logs", FakeCollection())
        db = SimpleNamespace(**collections)
        monkeypatch.setattr(_db, "db", db, raising=False)
        return db

    return _install
