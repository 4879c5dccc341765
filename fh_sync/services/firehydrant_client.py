import httpx
import logging
from typing import List, Dict, Any, Optional
from fh_sync.core.config import settings

logger = logging.getLogger(__name__)


class FireHydrantClient:
    """Client for the FireHydrant REST API, scoped to one environment's API key"""

    def __init__(
        self,
        api_key: str,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.FIREHYDRANT_API_URL).rstrip("/")
        self.api_key = api_key
        self.timeout = timeout or settings.FIREHYDRANT_TIMEOUT_SECONDS
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport)

    def _url(self, path: str, entity_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/{path.strip('/')}"
        if entity_id is not None:
            if str(entity_id) == "":
                raise ValueError(f"Empty identifier for {path}")
            url = f"{url}/{entity_id}"
        return url

    @staticmethod
    def _parse_body(response: httpx.Response) -> Optional[Any]:
        """Decode a JSON body; empty bodies (typical for DELETE) mean no data"""
        if not response.content or not response.content.strip():
            return None
        return response.json()

    async def list_entities(self, path: str) -> List[Dict[str, Any]]:
        """Fetch a whole collection (bare list or {"data": [...]} envelope)"""
        async with self._client() as client:
            response = await client.get(
                self._url(path),
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            data = self._parse_body(response)
            if isinstance(data, list):
                return data
            if isinstance(data, dict) and isinstance(data.get("data"), list):
                return data["data"]
            raise ValueError(
                f"Unexpected listing body for {path}: expected a list or a data envelope"
            )

    async def get_entity(self, path: str, entity_id: str) -> Dict[str, Any]:
        """Get a single record by id"""
        async with self._client() as client:
            response = await client.get(
                self._url(path, entity_id),
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            return self._parse_body(response)

    async def create_entity(self, path: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Create a record in the collection"""
        async with self._client() as client:
            response = await client.post(
                self._url(path),
                headers=self.headers,
                json=data,
                timeout=self.timeout
            )
            response.raise_for_status()
            return self._parse_body(response)

    async def update_entity(
        self,
        path: str,
        entity_id: str,
        data: Dict[str, Any],
        method: str = "PATCH",
    ) -> Optional[Dict[str, Any]]:
        """Update a record; runbooks take PUT, everything else PATCH"""
        async with self._client() as client:
            try:
                response = await client.request(
                    method.upper(),
                    self._url(path, entity_id),
                    headers=self.headers,
                    json=data,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return self._parse_body(response)
            except httpx.HTTPStatusError as e:
                logger.warning(
                    "FireHydrant returned %s for %s %s/%s: %s",
                    e.response.status_code, method.upper(), path, entity_id, e.response.text
                )
                raise

    async def delete_entity(self, path: str, entity_id: str) -> Optional[Dict[str, Any]]:
        """Delete a record"""
        async with self._client() as client:
            response = await client.delete(
                self._url(path, entity_id),
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            return self._parse_body(response)
