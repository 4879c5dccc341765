"""
Schemas for environment sync, revert and backup listing.

Wire names are camelCase (sourceEnv, backupFile, matchKey) because the admin
UI speaks camelCase; Python attributes stay snake_case.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum


class SyncAction(str, Enum):
    """Outcome recorded for one item in a reconciliation run"""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    FAILED = "failed"
    DELETE_SKIPPED = "delete_skipped"
    DELETE_FAILED = "delete_failed"


class SyncState(str, Enum):
    """Phases of a sync/revert run"""
    FETCHING_SOURCE = "fetching_source"
    FETCHING_TARGET = "fetching_target"
    SNAPSHOTTING = "snapshotting"
    DELETING = "deleting"
    UPSERTING = "upserting"
    DONE = "done"
    FAILED = "failed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ItemResult(_CamelModel):
    match_key: str = Field(..., alias="matchKey")
    action: SyncAction
    error: Optional[str] = None

    @property
    def is_failure(self) -> bool:
        return self.action in (SyncAction.FAILED, SyncAction.DELETE_FAILED)


class SyncRequest(_CamelModel):
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "category": "runbooks",
                "sourceEnv": "FH_API_KEY_STATUSBOARD_SANDBOX",
                "targetEnv": "FH_API_KEY__SANDBOX",
            }
        },
    )

    category: Optional[str] = Field(None, description="Collection to sync, e.g. 'runbooks'")
    source_env: Optional[str] = Field(None, alias="sourceEnv", description="Environment reference to read from")
    target_env: Optional[str] = Field(None, alias="targetEnv", description="Environment reference to write to")


class RevertRequest(_CamelModel):
    backup_file: Optional[str] = Field(None, alias="backupFile")
    target_env: Optional[str] = Field(None, alias="targetEnv")


class SyncResponse(_CamelModel):
    success: bool
    results: List[ItemResult] = []
    backup_file: str = Field(..., alias="backupFile")
    state: SyncState = SyncState.DONE


class RevertResponse(_CamelModel):
    success: bool
    results: List[ItemResult] = []
    state: SyncState = SyncState.DONE


class BackupEntry(BaseModel):
    file: str
    size: int
    mtime: datetime
    category: Optional[str] = None


class BackupListResponse(BaseModel):
    backups: List[BackupEntry] = []


class SyncErrorResponse(BaseModel):
    error: str
    stage: str
