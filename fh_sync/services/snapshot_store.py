"""
File-backed snapshot store.

Snapshots are owned by the TARGET environment and are immutable: one JSON
document per snapshot, written once, never rewritten or deleted here.

File layout:
    <BACKUP_DIR>/
        <category-slug>__<targetEnv>__<timestamp>.json

Document shape:
    {"category": ..., "targetEnv": ..., "timestamp": ..., "items": [...]}

The file name is the snapshot id handed back to callers for revert.
"""
import json
import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from fh_sync.core.category import Category
from fh_sync.core.exceptions import (
    SnapshotNotFoundError,
    SnapshotWriteError,
    SyncEngineError,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"
SNAPSHOT_SUFFIX = ".json"
NAME_SEPARATOR = "__"
_SAFE_NAME = re.compile(r"^[A-Za-z0-9_.\-]+\.json$")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_\-]")


@dataclass
class Snapshot:
    """Point-in-time capture of one category in one target environment."""
    id: str
    category: Category
    target_env: str
    created_at: datetime
    items: List[Dict[str, Any]] = field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "targetEnv": self.target_env,
            "timestamp": self.created_at.isoformat(),
            "items": self.items,
        }


@dataclass
class SnapshotInfo:
    """Listing entry; items are not loaded."""
    id: str
    category: Optional[Category]
    size: int
    created_at: datetime
    mtime: datetime


def _parse_stamp(stamp: str) -> Optional[datetime]:
    try:
        return datetime.strptime(stamp, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


class SnapshotStore:
    """Persists and lists snapshots under a single directory."""

    def __init__(self, backup_dir: str):
        self.backup_dir = Path(backup_dir)
        self._lock = threading.Lock()
        self._last_created_at: Optional[datetime] = None

    def _next_timestamp(self) -> datetime:
        # Strictly increasing so two snapshots never share a name or an ordering slot
        with self._lock:
            now = datetime.now(timezone.utc)
            if self._last_created_at is not None and now <= self._last_created_at:
                now = self._last_created_at + timedelta(microseconds=1)
            self._last_created_at = now
            return now

    def _build_name(self, category: Category, target_env: str, created_at: datetime) -> str:
        safe_target = _UNSAFE_CHARS.sub("-", target_env)
        return NAME_SEPARATOR.join(
            [category.slug, safe_target, created_at.strftime(TIMESTAMP_FORMAT)]
        ) + SNAPSHOT_SUFFIX

    def _resolve(self, snapshot_id: str) -> Path:
        if not snapshot_id or not _SAFE_NAME.match(snapshot_id):
            raise SnapshotNotFoundError(snapshot_id)
        path = self.backup_dir / snapshot_id
        if not path.is_file():
            raise SnapshotNotFoundError(snapshot_id)
        return path

    def write(
        self, category: Category, target_env: str, items: List[Dict[str, Any]]
    ) -> Snapshot:
        """Durably write a snapshot. Returns only once the file is on disk."""
        created_at = self._next_timestamp()
        name = self._build_name(category, target_env, created_at)
        snapshot = Snapshot(
            id=name,
            category=category,
            target_env=target_env,
            created_at=created_at,
            items=list(items),
        )

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            path = self.backup_dir / name
            if path.exists():
                raise FileExistsError(f"Backup {name} already exists")
            payload = json.dumps(snapshot.to_document(), indent=2, ensure_ascii=False)

            fd, tmp_name = tempfile.mkstemp(
                dir=self.backup_dir, prefix=".tmp-", suffix=SNAPSHOT_SUFFIX
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write backup %s: %s", name, e)
            raise SnapshotWriteError(
                f"Failed to write backup before sync: {str(e)}",
                details={"backupFile": name},
            )

        logger.info(
            "Wrote backup %s (%d %s items from %s)",
            name, len(snapshot.items), category.value, target_env,
        )
        return snapshot

    def load(self, snapshot_id: str) -> Snapshot:
        path = self._resolve(snapshot_id)
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise SyncEngineError(f"Backup {snapshot_id} is unreadable: {str(e)}")

        category = Category.from_string(document.get("category"))
        if category is None:
            raise SyncEngineError(
                f"Backup {snapshot_id} names unknown category {document.get('category')!r}"
            )

        items = document.get("items") or []
        timestamp = document.get("timestamp")
        try:
            created_at = datetime.fromisoformat(timestamp) if timestamp else None
        except ValueError:
            created_at = None

        return Snapshot(
            id=snapshot_id,
            category=category,
            target_env=document.get("targetEnv", ""),
            created_at=created_at or datetime.fromtimestamp(path.stat().st_mtime, timezone.utc),
            items=items,
        )

    def list_snapshots(self, category: Optional[Category] = None) -> List[SnapshotInfo]:
        """List snapshots newest first, optionally for a single category."""
        if not self.backup_dir.exists():
            return []

        entries: List[SnapshotInfo] = []
        for path in self.backup_dir.glob(f"*{SNAPSHOT_SUFFIX}"):
            if path.name.startswith("."):
                continue
            parts = path.stem.split(NAME_SEPARATOR)
            entry_category = Category.from_string(parts[0].replace("-", "/")) if parts else None
            if category is not None and entry_category != category:
                continue

            stat = path.stat()
            mtime = datetime.fromtimestamp(stat.st_mtime, timezone.utc)
            created_at = _parse_stamp(parts[-1]) if len(parts) >= 3 else None
            entries.append(
                SnapshotInfo(
                    id=path.name,
                    category=entry_category,
                    size=stat.st_size,
                    created_at=created_at or mtime,
                    mtime=mtime,
                )
            )

        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries
