"""
Error taxonomy for the environment sync engine.

Whole-operation failures (validation, fetch, snapshot, not-found) are raised
before any mutating call and surface to the caller. ItemOperationError is
raised per record and folded into the reconciliation results by the service.
"""
from typing import Optional, Dict, Any
from fastapi import HTTPException, status


class SyncEngineError(HTTPException):
    """Base class for sync failures that abort the whole operation."""
    stage = "sync"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        super().__init__(
            status_code=status_code,
            detail={
                "error": message,
                "stage": self.stage,
                "details": details or {},
            },
        )

    def __str__(self) -> str:
        return self.message


class SyncValidationError(SyncEngineError):
    """Missing or unresolvable category / environment reference."""
    stage = "validation"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class UpstreamFetchError(SyncEngineError):
    """Listing the source or target collection failed."""
    stage = "fetch"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, details)


class SnapshotWriteError(SyncEngineError):
    """The pre-mutation backup could not be persisted."""
    stage = "snapshot"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR, details)


class SnapshotNotFoundError(SyncEngineError):
    stage = "lookup"

    def __init__(self, snapshot_id: str):
        super().__init__(
            f"Backup {snapshot_id} not found",
            status.HTTP_404_NOT_FOUND,
            {"backupFile": snapshot_id},
        )


class ItemOperationError(Exception):
    """A single create/update/delete against the remote API failed."""

    def __init__(self, match_key: str, operation: str, message: str):
        self.match_key = match_key
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed for '{match_key}': {message}")
