"""
Environment Sync Service - mirrors one FireHydrant category between environments

This service handles:
- sync: converge a target environment's collection onto a source environment
- revert: converge a target environment back onto one of its own snapshots
- backup listing for the revert picker
- read-only entity access for the entity viewer

Key Rules:
- A snapshot of the target is written (durably) before any mutating call
- Fetch/snapshot failures abort the whole run; nothing has been changed yet
- Per-item failures after the snapshot are recorded and never abort the run
- All deletes finish before the first create/update is issued
- sync sends sanitized payloads; revert replays snapshot payloads verbatim

Run phases:
    FETCHING_SOURCE -> FETCHING_TARGET -> SNAPSHOTTING -> DELETING -> UPSERTING -> DONE
    (FAILED is reachable only from the first three)
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import httpx
from fastapi import HTTPException, status

from fh_sync.core.category import Category
from fh_sync.core.exceptions import (
    ItemOperationError,
    SyncEngineError,
    SyncValidationError,
    UpstreamFetchError,
)
from fh_sync.schemas.sync import ItemResult, SyncAction, SyncState
from fh_sync.services.entity_adapter import (
    AdapterFactory,
    EntityAdapter,
    firehydrant_adapter_factory,
)
from fh_sync.services.identity import (
    find_duplicate_keys,
    identifier,
    index_by_match_key,
    match_key,
)
from fh_sync.services.sanitizer import sanitize
from fh_sync.services.snapshot_store import SnapshotInfo, SnapshotStore

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
PayloadBuilder = Callable[[Record], Record]

MAX_ERROR_BODY_CHARS = 500


@dataclass
class ReconciliationPlan:
    """What it takes to turn `current` into `desired`.

    to_delete keeps current-list order; upserts keep desired-list order and
    pair each desired record with the current record sharing its match key.
    """
    to_delete: List[Record] = field(default_factory=list)
    upserts: List[Tuple[Record, Optional[Record]]] = field(default_factory=list)


@dataclass
class SyncOutcome:
    snapshot_id: str
    results: List[ItemResult] = field(default_factory=list)
    state: SyncState = SyncState.DONE

    @property
    def success(self) -> bool:
        return not any(r.is_failure for r in self.results)


@dataclass
class RevertOutcome:
    snapshot_id: str
    results: List[ItemResult] = field(default_factory=list)
    state: SyncState = SyncState.DONE

    @property
    def success(self) -> bool:
        return not any(r.is_failure for r in self.results)


def build_plan(desired: List[Record], current: List[Record]) -> ReconciliationPlan:
    """Three-way diff keyed on match_key."""
    desired_keys = {match_key(record) for record in desired}
    current_index = index_by_match_key(current)

    plan = ReconciliationPlan()
    plan.to_delete = [r for r in current if match_key(r) not in desired_keys]
    plan.upserts = [(r, current_index.get(match_key(r))) for r in desired]
    return plan


def _describe_error(error: Exception) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        body = error.response.text[:MAX_ERROR_BODY_CHARS]
        return f"HTTP {error.response.status_code}: {body}" if body else f"HTTP {error.response.status_code}"
    message = str(error)
    return message or error.__class__.__name__


class EnvironmentSyncService:
    """Reconciles FireHydrant collections between configured environments."""

    def __init__(
        self,
        credentials: Dict[str, str],
        snapshot_store: SnapshotStore,
        adapter_factory: AdapterFactory = firehydrant_adapter_factory,
        max_concurrency: int = 4,
    ):
        """
        Args:
            credentials: environment reference -> API key. The only place keys live.
            snapshot_store: where pre-mutation backups are written and read back
            adapter_factory: builds an EntityAdapter for (api_key, category)
            max_concurrency: upper bound on in-flight item calls within a phase
        """
        self._credentials = dict(credentials)
        self.snapshot_store = snapshot_store
        self._adapter_factory = adapter_factory
        self._max_concurrency = max(1, max_concurrency)

    # =========================================================================
    # Validation helpers
    # =========================================================================

    def _resolve_category(
        self, value: Union[str, Category, None], require_syncable: bool = True
    ) -> Category:
        if not value:
            raise SyncValidationError("category is required")
        category = value if isinstance(value, Category) else Category.from_string(value)
        if category is None:
            raise SyncValidationError(
                f"Unknown category '{value}'",
                details={"supported": Category.get_syncable_categories()},
            )
        if require_syncable and not category.spec.syncable:
            raise SyncValidationError(f"Category '{category.value}' cannot be synced")
        return category

    def _resolve_credential(self, env_ref: Optional[str], role: str) -> str:
        if not env_ref:
            raise SyncValidationError(f"{role} environment is required")
        api_key = self._credentials.get(env_ref)
        if not api_key:
            # Never echo anything but the reference itself
            raise SyncValidationError(f"Unknown {role} environment '{env_ref}'")
        return api_key

    def _adapter(self, env_ref: str, category: Category, role: str) -> EntityAdapter:
        return self._adapter_factory(self._resolve_credential(env_ref, role), category)

    # =========================================================================
    # Phases
    # =========================================================================

    async def _fetch(
        self, adapter: EntityAdapter, category: Category, env_ref: str, role: str
    ) -> List[Record]:
        try:
            items = await adapter.list_entities()
        except Exception as e:
            logger.error(
                "Failed to fetch %s from %s environment %s: %s",
                category.value, role, env_ref, _describe_error(e),
            )
            raise UpstreamFetchError(
                f"Failed to fetch {category.value} from {role} environment {env_ref}: {_describe_error(e)}",
                details={"environment": env_ref, "role": role},
            )
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise UpstreamFetchError(
                f"Unexpected {category.value} listing from {role} environment {env_ref}",
                details={"environment": env_ref, "role": role},
            )
        return items

    async def _run_bounded(self, calls: List[Awaitable[ItemResult]]) -> List[ItemResult]:
        """Run item calls concurrently; results come back in call order."""
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def guarded(call: Awaitable[ItemResult]) -> ItemResult:
            async with semaphore:
                return await call

        return list(await asyncio.gather(*(guarded(c) for c in calls)))

    async def _delete_one(self, adapter: EntityAdapter, record: Record) -> ItemResult:
        key = match_key(record)
        entity_id = identifier(record)
        if entity_id is None:
            logger.warning("Skipping delete of '%s': record has no identifier", key)
            return ItemResult(match_key=key, action=SyncAction.DELETE_SKIPPED)
        try:
            await adapter.delete_entity(entity_id)
            return ItemResult(match_key=key, action=SyncAction.DELETED)
        except Exception as e:
            error = ItemOperationError(key, "delete", _describe_error(e))
            logger.warning(str(error))
            return ItemResult(match_key=key, action=SyncAction.DELETE_FAILED, error=error.message)

    async def _upsert_one(
        self,
        adapter: EntityAdapter,
        desired: Record,
        current: Optional[Record],
        build_payload: PayloadBuilder,
    ) -> ItemResult:
        key = match_key(desired)
        entity_id = identifier(current) if current is not None else None
        operation = "update" if entity_id is not None else "create"
        try:
            payload = build_payload(desired)
            if entity_id is not None:
                await adapter.update_entity(entity_id, payload)
                return ItemResult(match_key=key, action=SyncAction.UPDATED)
            await adapter.create_entity(payload)
            return ItemResult(match_key=key, action=SyncAction.CREATED)
        except Exception as e:
            error = ItemOperationError(key, operation, _describe_error(e))
            logger.warning(str(error))
            return ItemResult(match_key=key, action=SyncAction.FAILED, error=error.message)

    async def _apply_plan(
        self,
        adapter: EntityAdapter,
        plan: ReconciliationPlan,
        build_payload: PayloadBuilder,
        run_label: str,
    ) -> List[ItemResult]:
        logger.info("%s: %s (%d items)", run_label, SyncState.DELETING.value, len(plan.to_delete))
        results = await self._run_bounded(
            [self._delete_one(adapter, record) for record in plan.to_delete]
        )

        logger.info("%s: %s (%d items)", run_label, SyncState.UPSERTING.value, len(plan.upserts))
        results += await self._run_bounded(
            [
                self._upsert_one(adapter, desired, current, build_payload)
                for desired, current in plan.upserts
            ]
        )
        return results

    @staticmethod
    def _warn_on_collisions(records: List[Record], label: str) -> None:
        duplicates = find_duplicate_keys(records)
        if duplicates:
            logger.warning(
                "%s has records sharing a match key %s; only the first of each is paired",
                label, duplicates,
            )

    # =========================================================================
    # Public operations
    # =========================================================================

    async def sync(
        self,
        category: Union[str, Category, None],
        source_ref: Optional[str],
        target_ref: Optional[str],
    ) -> SyncOutcome:
        """Make target_ref's collection match source_ref's.

        Raises:
            SyncValidationError, UpstreamFetchError, SnapshotWriteError: before
                any mutating call has been made
        """
        category = self._resolve_category(category)
        source = self._adapter(source_ref, category, "source")
        target = self._adapter(target_ref, category, "target")
        if source_ref == target_ref:
            logger.warning(
                "Sync of %s with identical source and target %s", category.value, target_ref
            )

        run_label = f"sync {category.value} {source_ref} -> {target_ref}"
        state = SyncState.FETCHING_SOURCE
        try:
            logger.info("%s: %s", run_label, state.value)
            source_items = await self._fetch(source, category, source_ref, "source")

            state = SyncState.FETCHING_TARGET
            logger.info("%s: %s", run_label, state.value)
            target_items = await self._fetch(target, category, target_ref, "target")

            state = SyncState.SNAPSHOTTING
            logger.info("%s: %s", run_label, state.value)
            snapshot = await asyncio.to_thread(
                self.snapshot_store.write, category, target_ref, target_items
            )
        except SyncEngineError as e:
            logger.error("%s: %s during %s: %s", run_label, SyncState.FAILED.value, state.value, e)
            raise

        self._warn_on_collisions(source_items, f"source {source_ref}")
        self._warn_on_collisions(target_items, f"target {target_ref}")

        plan = build_plan(source_items, target_items)
        results = await self._apply_plan(
            target, plan, lambda record: sanitize(record, category), run_label
        )

        outcome = SyncOutcome(snapshot_id=snapshot.id, results=results)
        logger.info(
            "%s: %s (%d results, %d failed, backup %s)",
            run_label, SyncState.DONE.value, len(results),
            sum(1 for r in results if r.is_failure), snapshot.id,
        )
        return outcome

    async def revert(self, snapshot_id: Optional[str], target_ref: Optional[str]) -> RevertOutcome:
        """Make target_ref's collection match a previously written snapshot.

        Snapshot payloads are replayed unsanitized: they are the target's own
        earlier state, not records imported from another environment. Revert
        does not write a snapshot of its own.

        Raises:
            SyncValidationError, SnapshotNotFoundError, UpstreamFetchError
        """
        if not snapshot_id:
            raise SyncValidationError("backupFile is required")
        self._resolve_credential(target_ref, "target")

        snapshot = await asyncio.to_thread(self.snapshot_store.load, snapshot_id)
        if snapshot.target_env and snapshot.target_env != target_ref:
            raise SyncValidationError(
                f"Backup {snapshot_id} belongs to environment '{snapshot.target_env}', not '{target_ref}'"
            )

        category = snapshot.category
        target = self._adapter(target_ref, category, "target")
        run_label = f"revert {category.value} {target_ref} <- {snapshot_id}"

        state = SyncState.FETCHING_TARGET
        try:
            logger.info("%s: %s", run_label, state.value)
            current_items = await self._fetch(target, category, target_ref, "target")
        except SyncEngineError as e:
            logger.error("%s: %s during %s: %s", run_label, SyncState.FAILED.value, state.value, e)
            raise

        self._warn_on_collisions(current_items, f"target {target_ref}")

        plan = build_plan(snapshot.items, current_items)
        results = await self._apply_plan(target, plan, lambda record: record, run_label)

        logger.info("%s: %s (%d results)", run_label, SyncState.DONE.value, len(results))
        return RevertOutcome(snapshot_id=snapshot_id, results=results)

    async def list_backups(self, category: Union[str, Category, None] = None) -> List[SnapshotInfo]:
        """Snapshots newest first, optionally restricted to one category."""
        resolved = self._resolve_category(category) if category else None
        return await asyncio.to_thread(self.snapshot_store.list_snapshots, resolved)

    # =========================================================================
    # Entity viewer
    # =========================================================================

    async def list_entities(self, category: Union[str, Category, None], env_ref: Optional[str]) -> List[Record]:
        category = self._resolve_category(category, require_syncable=False)
        adapter = self._adapter(env_ref, category, "viewer")
        return await self._fetch(adapter, category, env_ref, "viewer")

    async def get_entity(
        self, category: Union[str, Category, None], env_ref: Optional[str], entity_id: str
    ) -> Record:
        category = self._resolve_category(category, require_syncable=False)
        adapter = self._adapter(env_ref, category, "viewer")
        try:
            return await adapter.get_entity(entity_id)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == status.HTTP_404_NOT_FOUND:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"{category.value} {entity_id} not found in {env_ref}",
                )
            raise UpstreamFetchError(
                f"Failed to fetch {category.value} {entity_id} from {env_ref}: {_describe_error(e)}"
            )
        except httpx.HTTPError as e:
            raise UpstreamFetchError(
                f"Failed to fetch {category.value} {entity_id} from {env_ref}: {_describe_error(e)}"
            )
