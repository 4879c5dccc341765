from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class EnvironmentInfo(BaseModel):
    """A configured environment as shown to the UI (never includes the API key)"""
    id: str
    label: str


class CategoryInfo(BaseModel):
    id: str
    label: str
    syncable: bool


class EntitySummary(BaseModel):
    """Dropdown entry for the entity viewer"""
    id: Optional[str] = None
    label: str


class EntityListResponse(BaseModel):
    category: str
    environment: str
    items: List[Dict[str, Any]] = []
    summaries: List[EntitySummary] = []
