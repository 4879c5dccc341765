from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from fh_sync.api.deps import get_sync_service
from fh_sync.core.exceptions import SyncEngineError
from fh_sync.schemas.sync import (
    BackupEntry,
    BackupListResponse,
    RevertRequest,
    RevertResponse,
    SyncErrorResponse,
    SyncRequest,
    SyncResponse,
)
from fh_sync.services.environment_sync_service import EnvironmentSyncService

router = APIRouter()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": SyncErrorResponse, "description": "Invalid request; nothing was changed"},
    404: {"model": SyncErrorResponse, "description": "Backup not found"},
    502: {"model": SyncErrorResponse, "description": "An environment could not be read; nothing was changed"},
    500: {"model": SyncErrorResponse, "description": "Backup could not be written or unexpected failure"},
}


@router.post(
    "", response_model=SyncResponse, response_model_exclude_none=True, responses=ERROR_RESPONSES
)
async def sync_environments(
    request: SyncRequest,
    service: EnvironmentSyncService = Depends(get_sync_service),
):
    """
    Mirror one category from the source environment into the target.

    A backup of the target is written before anything changes; its file name
    comes back as backupFile for a later revert. success is false when some
    items failed, in which case the backup is still valid.
    """
    try:
        outcome = await service.sync(request.category, request.source_env, request.target_env)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Unexpected error during sync")
        raise SyncEngineError(f"Sync failed: {str(e)}")

    return SyncResponse(
        success=outcome.success,
        results=outcome.results,
        backup_file=outcome.snapshot_id,
        state=outcome.state,
    )


@router.post(
    "/revert", response_model=RevertResponse, response_model_exclude_none=True, responses=ERROR_RESPONSES
)
async def revert_sync(
    request: RevertRequest,
    service: EnvironmentSyncService = Depends(get_sync_service),
):
    """
    Restore the target environment to the state captured in a backup.
    """
    try:
        outcome = await service.revert(request.backup_file, request.target_env)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Unexpected error during revert")
        raise SyncEngineError(f"Revert failed: {str(e)}")

    return RevertResponse(
        success=outcome.success,
        results=outcome.results,
        state=outcome.state,
    )


@router.get("/backups", response_model=BackupListResponse)
async def list_backups(
    category: Optional[str] = Query(None),
    service: EnvironmentSyncService = Depends(get_sync_service),
):
    """List backups newest first."""
    try:
        snapshots = await service.list_backups(category)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to list backups: %s", e)
        raise SyncEngineError(f"Failed to list backups: {str(e)}")

    return BackupListResponse(
        backups=[
            BackupEntry(
                file=s.id,
                size=s.size,
                mtime=s.mtime,
                category=s.category.value if s.category else None,
            )
            for s in snapshots
        ]
    )
