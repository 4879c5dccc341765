from fastapi import APIRouter, Depends, Query
from typing import Any, Dict

from fh_sync.api.deps import get_sync_service
from fh_sync.schemas.entity import EntityListResponse, EntitySummary
from fh_sync.services.environment_sync_service import EnvironmentSyncService
from fh_sync.services.identity import identifier

router = APIRouter()


def _summary_label(record: Dict[str, Any]) -> str:
    entity_id = identifier(record)
    return record.get("name") or record.get("title") or f"ID: {entity_id}"


@router.get("", response_model=EntityListResponse)
async def list_entities(
    category: str = Query(..., description="Collection path, e.g. 'runbooks'"),
    environment: str = Query(..., description="Environment reference"),
    service: EnvironmentSyncService = Depends(get_sync_service),
):
    """
    List every record of a category in one environment, for the entity viewer.
    """
    items = await service.list_entities(category, environment)
    return EntityListResponse(
        category=category,
        environment=environment,
        items=items,
        summaries=[
            EntitySummary(id=identifier(item), label=_summary_label(item))
            for item in items
        ],
    )


@router.get("/{entity_id}")
async def get_entity(
    entity_id: str,
    category: str = Query(...),
    environment: str = Query(...),
    service: EnvironmentSyncService = Depends(get_sync_service),
):
    """Raw JSON of a single record."""
    return await service.get_entity(category, environment, entity_id)
