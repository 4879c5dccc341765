from fastapi import APIRouter, Depends
from typing import Dict, List

from fh_sync.api.deps import get_environment_labels
from fh_sync.core.category import Category
from fh_sync.schemas.entity import CategoryInfo, EnvironmentInfo

router = APIRouter()


@router.get("/environments", response_model=List[EnvironmentInfo])
async def list_environments(labels: Dict[str, str] = Depends(get_environment_labels)):
    """Configured environments. API keys are never returned."""
    return [EnvironmentInfo(id=ref, label=label) for ref, label in labels.items()]


@router.get("/categories", response_model=List[CategoryInfo])
async def list_categories():
    return [
        CategoryInfo(id=c.value, label=c.spec.label, syncable=c.spec.syncable)
        for c in Category
    ]
