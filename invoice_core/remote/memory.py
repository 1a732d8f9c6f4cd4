# =============================================================================
# invoice_core/remote/memory.py
# In-process remote record service
# =============================================================================
"""
InMemoryRemoteService - a process-local stand-in for the hosted store.

Useful for demos, development without credentials, and tests. Mirrors the
behaviour the data layer relies on: remote-assigned ids, equality filters,
partial updates, push subscriptions with full snapshots, and a native
timestamp type (``pandas.Timestamp``) distinct from ``datetime``.

Failure injection:
    service.offline = True            # every call raises ConnectivityError
    service.fail_with = SomeError()   # every call raises that error
"""

from __future__ import annotations
import copy
import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from invoice_core.errors import ConnectivityError, RemoteServiceError
from invoice_core.remote.base import (
    Filters,
    Record,
    RemoteRecordService,
    SnapshotCallback,
    Subscription,
)


def _matches(record: Record, filters: Optional[Filters]) -> bool:
    return all(record.get(key) == value for key, value in (filters or {}).items())


class InMemoryRemoteService(RemoteRecordService):
    """Dictionary-backed remote service."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Record]] = {}
        self._subscribers: Dict[str, List[Tuple[Subscription, Optional[Filters]]]] = {}
        self._lock = threading.RLock()
        self.offline = False
        self.fail_with: Optional[Exception] = None
        self.calls: List[Tuple[str, str, Optional[str]]] = []

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _check(self, operation: str, collection: str, record_id: Optional[str] = None) -> None:
        self.calls.append((operation, collection, record_id))
        if self.offline:
            raise ConnectivityError("Remote service unreachable", collection=collection, record_id=record_id)
        if self.fail_with is not None:
            raise self.fail_with

    def _snapshot(self, collection: str, filters: Optional[Filters]) -> List[Record]:
        records = self._collections.get(collection, {})
        return [copy.deepcopy(r) for r in records.values() if _matches(r, filters)]

    def _publish(self, collection: str) -> None:
        for subscription, filters in list(self._subscribers.get(collection, [])):
            subscription.deliver(self._snapshot(collection, filters))

    def seed(self, collection: str, records: List[Record]) -> None:
        """Load records directly, bypassing failure injection."""
        with self._lock:
            store = self._collections.setdefault(collection, {})
            for record in records:
                store[record["id"]] = copy.deepcopy(record)
            self._publish(collection)

    def records(self, collection: str) -> Dict[str, Record]:
        """Current remote state of a collection, keyed by id."""
        with self._lock:
            return copy.deepcopy(self._collections.get(collection, {}))

    # =========================================================================
    # REMOTE OPERATIONS
    # =========================================================================

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        with self._lock:
            self._check("get", collection, record_id)
            record = self._collections.get(collection, {}).get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def list(self, collection: str, filters: Optional[Filters] = None) -> List[Record]:
        with self._lock:
            self._check("list", collection)
            return self._snapshot(collection, filters)

    def add(self, collection: str, data: Record) -> str:
        with self._lock:
            self._check("add", collection)
            record_id = uuid.uuid4().hex[:20]
            record = copy.deepcopy(data)
            record["id"] = record_id
            self._collections.setdefault(collection, {})[record_id] = record
            self._publish(collection)
            return record_id

    def update(self, collection: str, record_id: str, data: Record) -> None:
        with self._lock:
            self._check("update", collection, record_id)
            existing = self._collections.get(collection, {}).get(record_id)
            if existing is None:
                raise RemoteServiceError(
                    "No document to update",
                    collection=collection,
                    record_id=record_id,
                )
            changes = {k: copy.deepcopy(v) for k, v in data.items() if k != "id"}
            existing.update(changes)
            self._publish(collection)

    def delete(self, collection: str, record_id: str) -> None:
        with self._lock:
            self._check("delete", collection, record_id)
            self._collections.get(collection, {}).pop(record_id, None)
            self._publish(collection)

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        filters: Optional[Filters] = None,
    ) -> Subscription:
        with self._lock:
            self._check("subscribe", collection)
            entry: List[Tuple[Subscription, Optional[Filters]]] = []

            def release() -> None:
                with self._lock:
                    subscribers = self._subscribers.get(collection, [])
                    if entry and entry[0] in subscribers:
                        subscribers.remove(entry[0])

            subscription = Subscription(on_snapshot, on_cancel=release)
            entry.append((subscription, filters))
            self._subscribers.setdefault(collection, []).append(entry[0])
            subscription.deliver(self._snapshot(collection, filters))
            return subscription

    def subscriber_count(self, collection: str) -> int:
        with self._lock:
            return len(self._subscribers.get(collection, []))

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================

    def is_remote_timestamp(self, value: Any) -> bool:
        return isinstance(value, pd.Timestamp)

    def to_datetime(self, value: Any) -> datetime:
        return value.to_pydatetime()
