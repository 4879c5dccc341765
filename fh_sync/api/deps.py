"""FastAPI dependencies. Tests swap these out through app.dependency_overrides."""
from functools import lru_cache
from typing import Dict

from fh_sync.core.config import settings
from fh_sync.services.environment_sync_service import EnvironmentSyncService
from fh_sync.services.snapshot_store import SnapshotStore


@lru_cache
def get_sync_service() -> EnvironmentSyncService:
    return EnvironmentSyncService(
        credentials=settings.credential_map(),
        snapshot_store=SnapshotStore(settings.BACKUP_DIR),
        max_concurrency=settings.SYNC_MAX_CONCURRENCY,
    )


def get_environment_labels() -> Dict[str, str]:
    return settings.environment_labels()
