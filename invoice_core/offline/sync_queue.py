# =============================================================================
# invoice_core/offline/sync_queue.py
# Durable queue of mutations pending remote application
# =============================================================================
"""
SyncQueue - records mutations that could not reach the remote service and
replays them, oldest first, when connectivity returns.

Features:
- Entries persisted in the local store (``sync_queue`` collection)
- Replay in timestamp order, at-least-once
- Per-entry failure isolation; later entries of a failed record wait
- Temporary ids superseded by remote ids through an alias table
- Non-reentrant drain (a second request while draining is a no-op)
"""

from __future__ import annotations
import copy
import random
import string
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Set, Tuple
import logging

from invoice_core.errors import SyncReplayError
from invoice_core.logging import LogContext
from invoice_core.offline.local_database import LocalDatabase
from invoice_core.offline.schema import ID_ALIASES, SYNC_QUEUE
from invoice_core.remote.base import RemoteRecordService

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def now_ms() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


def generate_local_id(collection: str, timestamp: Optional[int] = None) -> str:
    """Temporary id for a record created offline: <collection>_<epoch-ms>_<suffix>."""
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=9))
    return f"{collection}_{timestamp if timestamp is not None else now_ms()}_{suffix}"


class SyncOperation(Enum):
    """Kind of queued mutation."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class SyncEntry:
    """
    One pending mutation.

    ``data`` is the full record for a create, ``{id, **changes}`` for an
    update and ``{id}`` for a delete.
    """
    id: str
    operation: SyncOperation
    collection: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0
    user_id: str = ""

    @property
    def record_id(self) -> Optional[str]:
        return self.data.get("id")

    @classmethod
    def new(
        cls,
        operation: SyncOperation,
        collection: str,
        data: Dict[str, Any],
        user_id: str,
        timestamp: Optional[int] = None,
    ) -> SyncEntry:
        """Build an entry with a fresh id and the current time."""
        ts = timestamp if timestamp is not None else now_ms()
        record_id = data.get("id", "")
        if operation is SyncOperation.CREATE:
            entry_id = f"{record_id}_sync"
        else:
            entry_id = f"{record_id}_sync_{ts}_{uuid.uuid4().hex[:6]}"
        return cls(
            id=entry_id,
            operation=operation,
            collection=collection,
            data=copy.deepcopy(data),
            timestamp=ts,
            user_id=user_id,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "operation": self.operation.value,
            "collection": self.collection,
            "data": self.data,
            "timestamp": self.timestamp,
            "userId": self.user_id,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> SyncEntry:
        return cls(
            id=record["id"],
            operation=SyncOperation(record["operation"]),
            collection=record["collection"],
            data=record.get("data") or {},
            timestamp=int(record.get("timestamp", 0)),
            user_id=record.get("userId", ""),
        )


class DrainResult(NamedTuple):
    """Outcome of one drain."""
    succeeded: int
    failed: int


class SyncQueue:
    """
    Durable mutation log replayed against the remote service.

    Usage:
        queue = SyncQueue(local_db, remote)
        queue.enqueue(SyncEntry.new(SyncOperation.UPDATE, "invoices",
                                    {"id": "INV-1", "status": "paid"}, "user-1"))
        result = queue.drain()  # DrainResult(succeeded=1, failed=0)
    """

    def __init__(self, local_db: LocalDatabase, remote: RemoteRecordService):
        self._local_db = local_db
        self._remote = remote
        self._drain_lock = threading.Lock()
        self.last_result: Optional[DrainResult] = None
        self.last_errors: Dict[str, SyncReplayError] = {}

    # =========================================================================
    # QUEUE CONTENTS
    # =========================================================================

    def enqueue(self, entry: SyncEntry) -> None:
        """Append a pending mutation."""
        self._local_db.put(SYNC_QUEUE, entry.to_record())
        logger.debug(f"Queued {entry.operation.value} for {entry.collection}/{entry.record_id}")

    def entries(self) -> List[SyncEntry]:
        """All pending entries, oldest first."""
        return [
            SyncEntry.from_record(record)
            for record in self._local_db.get_all(SYNC_QUEUE, order_by="timestamp")
        ]

    def pending_count(self) -> int:
        """Number of entries waiting for replay."""
        return self._local_db.count(SYNC_QUEUE)

    def has_pending(self, collection: str, record_id: str) -> bool:
        """Whether any queued entry targets this record."""
        return any(
            entry.collection == collection
            and self.resolve_id(collection, entry.record_id) == record_id
            for entry in self.entries()
        )

    def pending_creates(self, collection: str) -> List[str]:
        """Temporary ids of records created offline and not yet replayed."""
        return [
            entry.record_id
            for entry in self.entries()
            if entry.operation is SyncOperation.CREATE
            and entry.collection == collection
            and self.resolve_id(collection, entry.record_id) == entry.record_id
        ]

    @property
    def is_draining(self) -> bool:
        return self._drain_lock.locked()

    # =========================================================================
    # ID ALIASES
    # =========================================================================

    def resolve_id(self, collection: str, record_id: Optional[str]) -> Optional[str]:
        """Map a superseded temporary id to its remote id (identity otherwise)."""
        if not record_id:
            return record_id
        alias = self._local_db.get(ID_ALIASES, record_id)
        if alias and alias.get("collection") == collection:
            return alias["remoteId"]
        return record_id

    def record_alias(self, collection: str, local_id: str, remote_id: str) -> None:
        self._local_db.put(ID_ALIASES, {
            "id": local_id,
            "collection": collection,
            "remoteId": remote_id,
            "createdAt": now_ms(),
        })

    # =========================================================================
    # REPLAY
    # =========================================================================

    def drain(self, on_start: Optional[Callable[[], None]] = None) -> Optional[DrainResult]:
        """
        Replay every pending entry against the remote service.

        Entries succeed or fail independently. After a failure, later entries
        for the same record are left queued so they replay in order next time.

        Args:
            on_start: Called once the drain has actually started

        Returns:
            DrainResult, or None when another drain is already running
        """
        if not self._drain_lock.acquire(blocking=False):
            logger.debug("Drain already in progress, ignoring request")
            return None

        try:
            if on_start is not None:
                on_start()

            pending = self.entries()
            if not pending:
                self.last_result = DrainResult(0, 0)
                return self.last_result

            succeeded = 0
            failed = 0
            blocked: Set[Tuple[str, Optional[str]]] = set()
            errors: Dict[str, SyncReplayError] = {}

            with LogContext(logger, f"Syncing {len(pending)} pending changes"):
                for entry in pending:
                    key = (entry.collection, self.resolve_id(entry.collection, entry.record_id))
                    if key in blocked:
                        failed += 1
                        continue

                    try:
                        self._replay(entry)
                    except Exception as e:
                        failed += 1
                        blocked.add(key)
                        errors[entry.id] = SyncReplayError(
                            str(e),
                            entry_id=entry.id,
                            operation=entry.operation.value,
                            details={"collection": entry.collection, "cause": type(e).__name__},
                        )
                        logger.warning(f"Error syncing entry {entry.id}: {e}")
                        continue

                    self._local_db.delete(SYNC_QUEUE, entry.id)
                    succeeded += 1

            self.last_result = DrainResult(succeeded, failed)
            self.last_errors = errors
            logger.info(f"Sync completed: {succeeded} successful, {failed} failed")
            return self.last_result

        finally:
            self._drain_lock.release()

    def _replay(self, entry: SyncEntry) -> None:
        """Apply one entry remotely; raises on failure."""
        collection = entry.collection
        record_id = entry.record_id
        changes = {k: v for k, v in entry.data.items() if k != "id"}

        if entry.operation is SyncOperation.CREATE:
            remote_id = self.resolve_id(collection, record_id)
            if remote_id == record_id:
                remote_id = self._remote.add(collection, changes)
                self.record_alias(collection, record_id, remote_id)
            else:
                logger.info(f"Create {entry.id} already applied as {remote_id}, skipping add")
            self._rekey_local(collection, record_id, remote_id)

        elif entry.operation is SyncOperation.UPDATE:
            self._remote.update(collection, self.resolve_id(collection, record_id), changes)

        elif entry.operation is SyncOperation.DELETE:
            target = self.resolve_id(collection, record_id)
            self._remote.delete(collection, target)
            self._local_db.delete(collection, target)

    def _rekey_local(self, collection: str, local_id: str, remote_id: str) -> None:
        """Move the cached copy from the temporary id to the remote id."""
        cached = self._local_db.get(collection, local_id)
        if cached is None:
            return
        self._local_db.delete(collection, local_id)
        self._local_db.put(collection, {**cached, "id": remote_id})
