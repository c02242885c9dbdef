"""In-process stand-ins for the Motor handles used by UsersRepository."""

import asyncio
import copy
from types import SimpleNamespace
from typing import Any

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from userstore.repository import RepositoryConfig, UsersRepository


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        if key not in document:
            return False
        value = document[key]
        if isinstance(condition, dict) and "$in" in condition:
            if value not in condition["$in"]:
                return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, documents: list[dict[str, Any]], error: Exception | None):
        self._documents = documents
        self._error = error
        self._skip = 0
        self._limit = 0

    def skip(self, count: int) -> "FakeCursor":
        self._skip = count
        return self

    def limit(self, count: int) -> "FakeCursor":
        self._limit = count
        return self

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        if self._error is not None:
            raise self._error
        documents = self._documents[self._skip:]
        if self._limit:
            documents = documents[: self._limit]
        return copy.deepcopy(documents)


class FakeCollection:
    """Subset of AsyncIOMotorCollection backed by a list."""

    def __init__(self) -> None:
        self.documents: list[dict[str, Any]] = []
        self.error: Exception | None = None
        self.queries: list[dict[str, Any]] = []

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        self._check()
        document.setdefault("_id", ObjectId())
        if any(doc["_id"] == document["_id"] for doc in self.documents):
            raise DuplicateKeyError("E11000 duplicate key error", code=11000)
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    def find(self, query: dict[str, Any] | None = None) -> FakeCursor:
        query = query or {}
        self.queries.append(query)
        matched = [doc for doc in self.documents if _matches(doc, query)]
        return FakeCursor(matched, self.error)

    async def update_one(
        self, query: dict[str, Any], update: dict[str, Any]
    ) -> SimpleNamespace:
        self._check()
        for doc in self.documents:
            if _matches(doc, query):
                changes = update["$set"]
                modified = any(doc.get(k) != v or k not in doc for k, v in changes.items())
                doc.update(copy.deepcopy(changes))
                return SimpleNamespace(matched_count=1, modified_count=int(modified))
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query: dict[str, Any]) -> SimpleNamespace:
        self._check()
        for index, doc in enumerate(self.documents):
            if _matches(doc, query):
                del self.documents[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query: dict[str, Any]) -> SimpleNamespace:
        self._check()
        kept = [doc for doc in self.documents if not _matches(doc, query)]
        deleted = len(self.documents) - len(kept)
        self.documents = kept
        return SimpleNamespace(deleted_count=deleted)


class FakeAdmin:
    def __init__(self) -> None:
        self.error: Exception | None = None
        self.hang = False

    async def command(self, name: str) -> dict[str, Any]:
        if self.hang:
            await asyncio.sleep(60)
        if self.error is not None:
            raise self.error
        return {"ok": 1.0}


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def admin() -> FakeAdmin:
    return FakeAdmin()


@pytest.fixture
def repository(collection: FakeCollection, admin: FakeAdmin):
    repo = UsersRepository(
        "mongodb://localhost:27017",
        RepositoryConfig(ping_timeout_seconds=0.05),
    )
    repo._collection = collection
    repo._admin = admin
    yield repo
    repo.close()
