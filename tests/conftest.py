"""
Shared fixtures: an in-memory stand-in for FireHydrant collections, a
SnapshotStore under tmp_path and a TestClient wired to both.
"""
import copy
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from fh_sync.api.deps import get_environment_labels, get_sync_service
from fh_sync.core.category import Category
from fh_sync.main import app
from fh_sync.services.environment_sync_service import EnvironmentSyncService
from fh_sync.services.snapshot_store import SnapshotStore


SOURCE_ENV = "FH_API_KEY_STATUSBOARD_SANDBOX"
TARGET_ENV = "FH_API_KEY__SANDBOX"

CREDENTIALS = {
    SOURCE_ENV: "source-api-key",
    TARGET_ENV: "target-api-key",
}


class InMemoryCollection:
    """One category in one fake environment. Records every call in order."""

    def __init__(self, name: str, items: Optional[List[Dict[str, Any]]] = None):
        self.name = name
        self.items: List[Dict[str, Any]] = [copy.deepcopy(i) for i in items or []]
        self.calls: List[Tuple[str, Optional[str], Optional[Dict[str, Any]]]] = []
        self.fail_ids: set = set()
        self.fail_creates_for: set = set()
        self.fail_listing = False
        self._next_id = 1000

    def _find(self, entity_id: str) -> Optional[Dict[str, Any]]:
        for item in self.items:
            if str(item.get("id")) == str(entity_id):
                return item
        return None

    def keys(self) -> List[str]:
        return [i.get("name") for i in self.items]


class InMemoryAdapter:
    def __init__(self, collection: InMemoryCollection):
        self.collection = collection

    async def list_entities(self) -> List[Dict[str, Any]]:
        self.collection.calls.append(("list", None, None))
        if self.collection.fail_listing:
            raise httpx.ConnectError("connection refused")
        return copy.deepcopy(self.collection.items)

    async def get_entity(self, entity_id: str) -> Dict[str, Any]:
        item = self.collection._find(entity_id)
        if item is None:
            request = httpx.Request("GET", f"https://fh.test/{entity_id}")
            raise httpx.HTTPStatusError(
                "not found", request=request, response=httpx.Response(404, request=request)
            )
        return copy.deepcopy(item)

    async def create_entity(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self.collection.calls.append(("create", data.get("name"), copy.deepcopy(data)))
        if data.get("name") in self.collection.fail_creates_for:
            raise RuntimeError("422 Unprocessable Entity")
        self.collection._next_id += 1
        created = {**copy.deepcopy(data), "id": str(self.collection._next_id)}
        self.collection.items.append(created)
        return created

    async def update_entity(self, entity_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        self.collection.calls.append(("update", str(entity_id), copy.deepcopy(data)))
        if str(entity_id) in self.collection.fail_ids:
            raise RuntimeError("500 Internal Server Error")
        item = self.collection._find(entity_id)
        if item is None:
            raise RuntimeError(f"{entity_id} does not exist")
        original_id = item.get("id")
        item.update(copy.deepcopy(data))
        item["id"] = original_id
        return copy.deepcopy(item)

    async def delete_entity(self, entity_id: str) -> None:
        self.collection.calls.append(("delete", str(entity_id), None))
        if str(entity_id) in self.collection.fail_ids:
            raise RuntimeError("403 Forbidden")
        item = self.collection._find(entity_id)
        if item is None:
            raise RuntimeError(f"{entity_id} does not exist")
        self.collection.items.remove(item)
        return None


class FakeFireHydrant:
    """Holds one InMemoryCollection per (environment api key, category)."""

    def __init__(self):
        self.collections: Dict[Tuple[str, Category], InMemoryCollection] = {}

    def collection(self, env_ref: str, category: Category = Category.SERVICES) -> InMemoryCollection:
        key = (CREDENTIALS[env_ref], category)
        if key not in self.collections:
            self.collections[key] = InMemoryCollection(f"{env_ref}:{category.value}")
        return self.collections[key]

    def seed(self, env_ref: str, items: List[Dict[str, Any]], category: Category = Category.SERVICES) -> InMemoryCollection:
        collection = self.collection(env_ref, category)
        collection.items = [copy.deepcopy(i) for i in items]
        return collection

    def adapter_factory(self, api_key: str, category: Category) -> InMemoryAdapter:
        key = (api_key, category)
        if key not in self.collections:
            self.collections[key] = InMemoryCollection(f"{api_key}:{category.value}")
        return InMemoryAdapter(self.collections[key])


@pytest.fixture
def fake_firehydrant() -> FakeFireHydrant:
    return FakeFireHydrant()


@pytest.fixture
def snapshot_store(tmp_path) -> SnapshotStore:
    return SnapshotStore(str(tmp_path / "backups"))


@pytest.fixture
def sync_service(fake_firehydrant, snapshot_store) -> EnvironmentSyncService:
    return EnvironmentSyncService(
        credentials=CREDENTIALS,
        snapshot_store=snapshot_store,
        adapter_factory=fake_firehydrant.adapter_factory,
        max_concurrency=4,
    )


@pytest.fixture
def client(sync_service) -> TestClient:
    app.dependency_overrides[get_sync_service] = lambda: sync_service
    app.dependency_overrides[get_environment_labels] = lambda: {
        SOURCE_ENV: "Statusboard Sandbox",
        TARGET_ENV: "Sandbox",
    }
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
