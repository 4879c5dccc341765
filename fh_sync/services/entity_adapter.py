"""Entity adapter protocol and its FireHydrant implementation.

The sync service talks to one category of one environment at a time through
an EntityAdapter. Binding the category up front keeps collection paths and
update verbs out of the reconciliation logic, and lets tests swap in an
in-memory environment.
"""
from typing import Protocol, List, Dict, Any, Optional, Callable, runtime_checkable

import httpx

from fh_sync.core.category import Category
from fh_sync.services.firehydrant_client import FireHydrantClient


@runtime_checkable
class EntityAdapter(Protocol):
    """Collection operations for one category in one environment.

    Adapters are instantiated per environment and category:
        adapter = FireHydrantEntityAdapter(api_key="...", category=Category.RUNBOOKS)
    """

    async def list_entities(self) -> List[Dict[str, Any]]:
        """Fetch every record in the collection.

        Returns:
            List of raw records as returned by the remote API
        """
        ...

    async def get_entity(self, entity_id: str) -> Dict[str, Any]:
        """Fetch a single record by its remote identifier."""
        ...

    async def create_entity(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Create a record.

        Args:
            data: Payload to send, already sanitized if it came from another environment

        Returns:
            Created record, or None when the API returns no body
        """
        ...

    async def update_entity(
        self, entity_id: str, data: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Update the record addressed by entity_id."""
        ...

    async def delete_entity(self, entity_id: str) -> Optional[Dict[str, Any]]:
        """Delete the record addressed by entity_id.

        Returns:
            Response body, or None for the usual empty body
        """
        ...


class FireHydrantEntityAdapter:
    """EntityAdapter backed by FireHydrantClient."""

    def __init__(
        self,
        api_key: str,
        category: Category,
        base_url: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.category = category
        self._spec = category.spec
        self._client = FireHydrantClient(api_key=api_key, base_url=base_url, transport=transport)

    async def list_entities(self) -> List[Dict[str, Any]]:
        return await self._client.list_entities(self._spec.path)

    async def get_entity(self, entity_id: str) -> Dict[str, Any]:
        return await self._client.get_entity(self._spec.path, entity_id)

    async def create_entity(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._client.create_entity(self._spec.path, data)

    async def update_entity(
        self, entity_id: str, data: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        return await self._client.update_entity(
            self._spec.path, entity_id, data, method=self._spec.update_method
        )

    async def delete_entity(self, entity_id: str) -> Optional[Dict[str, Any]]:
        return await self._client.delete_entity(self._spec.path, entity_id)


AdapterFactory = Callable[[str, Category], EntityAdapter]


def firehydrant_adapter_factory(api_key: str, category: Category) -> EntityAdapter:
    return FireHydrantEntityAdapter(api_key=api_key, category=category)
