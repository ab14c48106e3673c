"""Shared fixtures for unit tests."""

import copy
from typing import Any

import pytest

from core.exceptions import RemoteUnavailableError
from domain.repositories.profile_store import StoredDocument
from infrastructure.cache.local_cache import InMemoryLocalCache


class FakeRemoteProfileStore:
    """In-memory remote profile store that can be switched offline per operation."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str | None]] = []

    def go_offline(self) -> None:
        self.failing = {
            "get_document",
            "create_or_merge_document",
            "update_fields",
            "increment_field",
            "append_to_list",
            "list_documents",
        }

    def go_online(self) -> None:
        self.failing = set()

    def _check(self, operation: str, id: str | None = None) -> None:
        self.calls.append((operation, id))
        if operation in self.failing:
            raise RemoteUnavailableError(operation, id)

    def seed(self, id: str, **fields: Any) -> None:
        document = {
            "community_guess_total": 0,
            "community_guess_count": 0,
            "guess_history": [],
        }
        document.update(fields)
        self.documents[id] = document

    async def get_document(self, id: str) -> dict[str, Any] | None:
        self._check("get_document", id)
        document = self.documents.get(id)
        return copy.deepcopy(document) if document is not None else None

    async def create_or_merge_document(self, id: str, fields: dict[str, Any]) -> None:
        self._check("create_or_merge_document", id)
        self.documents.setdefault(id, {}).update(copy.deepcopy(fields))

    async def update_fields(self, id: str, partial: dict[str, Any]) -> None:
        self._check("update_fields", id)
        if id not in self.documents:
            raise LookupError(id)
        self.documents[id].update(copy.deepcopy(partial))

    async def increment_field(self, id: str, field: str, amount: int) -> None:
        self._check("increment_field", id)
        document = self.documents.setdefault(id, {})
        document[field] = document.get(field, 0) + amount

    async def append_to_list(self, id: str, field: str, item: dict[str, Any]) -> None:
        self._check("append_to_list", id)
        document = self.documents.setdefault(id, {})
        document[field] = [*document.get(field, []), dict(item)]

    async def list_documents(self) -> list[StoredDocument]:
        self._check("list_documents")
        return [
            StoredDocument(id=id, fields=copy.deepcopy(fields))
            for id, fields in sorted(self.documents.items())
        ]


@pytest.fixture
def store() -> FakeRemoteProfileStore:
    """Create a fresh in-memory remote store."""
    return FakeRemoteProfileStore()


@pytest.fixture
def cache() -> InMemoryLocalCache:
    """Create a fresh local cache."""
    return InMemoryLocalCache()
