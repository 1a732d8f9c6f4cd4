# =============================================================================
# invoice_core/offline/data_service.py
# Offline Data Service - Single CRUD API for Online/Offline Operations
# =============================================================================
"""
OfflineDataService - the generic CRUD entry point every entity service uses.

Online: remote first, normalized, written through to the local store.
Offline, or whenever a remote call fails: local store, with mutations
appended to the sync queue for later replay.

Usage:
------
from invoice_core.offline import create_data_service

service = create_data_service()
client_id = service.add("clients", {"companyId": "co1", "name": "Acme"}, actor_id="u1")
clients = service.get_all("clients", tenant_id="co1")

print(f"Online: {service.is_online}")
print(f"Pending sync: {service.pending_count}")
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional
import logging

import pandas as pd

from invoice_core.config import Settings, load_settings
from invoice_core.errors import LocalStoreUnavailableError, RemoteServiceError
from invoice_core.offline.connection_manager import ConnectionManager, SocketProbe, Probe
from invoice_core.offline.local_database import LocalDatabase
from invoice_core.offline.schema import (
    TENANT_FIELD,
    get_collection,
    validate_id,
    validate_payload,
)
from invoice_core.offline.sync_queue import (
    DrainResult,
    SyncEntry,
    SyncOperation,
    SyncQueue,
    generate_local_id,
)
from invoice_core.offline.timestamps import normalize_timestamps
from invoice_core.remote.base import Record, RemoteRecordService, Subscription

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[RemoteServiceError, str], None]


class OfflineDataService:
    """
    Local-first CRUD facade over the remote service and the local store.

    Every successful remote operation updates the local store before
    returning. Any remote failure, whatever its cause, takes the offline
    path instead of propagating, so mutations are always made durable.
    """

    def __init__(
        self,
        local_db: LocalDatabase,
        remote: RemoteRecordService,
        sync_queue: SyncQueue,
        connection_manager: ConnectionManager,
    ):
        self._local_db = local_db
        self._remote = remote
        self._queue = sync_queue
        self._connection_manager = connection_manager
        self._error_callbacks: List[ErrorCallback] = []
        self.last_remote_error: Optional[RemoteServiceError] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def local_db(self) -> LocalDatabase:
        return self._local_db

    @property
    def connection_manager(self) -> ConnectionManager:
        return self._connection_manager

    @property
    def is_online(self) -> bool:
        return self._connection_manager.is_online

    @property
    def is_offline(self) -> bool:
        return self._connection_manager.is_offline

    @property
    def is_syncing(self) -> bool:
        return self._connection_manager.is_syncing

    @property
    def pending_count(self) -> int:
        """Number of mutations waiting to reach the remote service."""
        return self._queue.pending_count()

    @property
    def local_store_error(self) -> Optional[LocalStoreUnavailableError]:
        return self._local_db.last_error

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _normalize(self, value: Any) -> Any:
        return normalize_timestamps(value, self._remote.is_remote_timestamp, self._remote.to_datetime)

    def register_error_callback(self, callback: ErrorCallback) -> None:
        """Register a listener for remote failures (error, operation)."""
        if callback not in self._error_callbacks:
            self._error_callbacks.append(callback)

    def unregister_error_callback(self, callback: ErrorCallback) -> None:
        if callback in self._error_callbacks:
            self._error_callbacks.remove(callback)

    def _report_remote_error(self, error: Exception, operation: str, collection: str) -> None:
        if not isinstance(error, RemoteServiceError):
            error = RemoteServiceError(str(error), collection=collection, details={"cause": type(error).__name__})
        self.last_remote_error = error

        if error.kind == "connectivity":
            logger.warning(f"{operation} {collection}: remote unreachable, using local store ({error.message})")
        else:
            logger.error(f"{operation} {collection}: remote {error.kind} error, using local store: {error}")

        for callback in list(self._error_callbacks):
            try:
                callback(error, operation)
            except Exception as e:
                logger.error(f"Error in remote error callback: {e}")

    def _require_local_store(self, operation: str, collection: str) -> None:
        if not self._local_db.is_available:
            error = self._local_db.last_error or LocalStoreUnavailableError("Local database not initialized")
            logger.error(f"Cannot {operation} {collection} offline: {error}")
            raise error

    def _enqueue(self, operation: SyncOperation, collection: str, data: Record, actor_id: str) -> None:
        self._queue.enqueue(SyncEntry.new(operation, collection, data, actor_id))
        self._connection_manager.refresh_pending()

    def _local_all(self, collection: str, tenant_id: Optional[str]) -> List[Record]:
        if tenant_id:
            return self._local_db.get_all_by_index(collection, TENANT_FIELD, tenant_id)
        return self._local_db.get_all(collection)

    def _unsynced_local(self, collection: str, tenant_id: Optional[str], seen: set) -> List[Record]:
        """Records created offline that the remote does not know yet."""
        records = []
        for local_id in self._queue.pending_creates(collection):
            if local_id in seen:
                continue
            record = self._local_db.get(collection, local_id)
            if record is None:
                continue
            if tenant_id and record.get(TENANT_FIELD) != tenant_id:
                continue
            records.append(record)
        return records

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        """
        Get one record.

        Args:
            collection: Collection name
            record_id: Remote id or (possibly superseded) temporary id

        Returns:
            The record, or None when it does not exist
        """
        get_collection(collection)
        validate_id(collection, record_id)
        record_id = self._queue.resolve_id(collection, record_id)

        if self.is_online:
            try:
                record = self._remote.get(collection, record_id)
            except Exception as e:
                self._report_remote_error(e, "get", collection)
            else:
                if record is not None:
                    record = self._normalize(record)
                    self._local_db.put(collection, record)
                    return record
                if self._queue.has_pending(collection, record_id):
                    # Exists locally, not yet synced
                    return self._local_db.get(collection, record_id)
                self._local_db.delete(collection, record_id)
                return None

        return self._local_db.get(collection, record_id)

    def get_all(self, collection: str, tenant_id: Optional[str] = None) -> List[Record]:
        """
        Get every record of a collection, optionally for one tenant.

        Args:
            collection: Collection name
            tenant_id: Company id to filter on

        Returns:
            List of records (never None)
        """
        get_collection(collection)

        if self.is_online:
            filters = {TENANT_FIELD: tenant_id} if tenant_id else None
            try:
                records = self._remote.list(collection, filters)
            except Exception as e:
                self._report_remote_error(e, "getAll", collection)
            else:
                records = self._normalize(records)
                self._local_db.put_many(collection, records)
                seen = {r["id"] for r in records}
                return records + self._unsynced_local(collection, tenant_id, seen)

        return self._local_all(collection, tenant_id)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add(self, collection: str, data: Record, actor_id: str) -> str:
        """
        Create a record.

        Returns:
            The remote id, or a temporary local id when the remote was not
            reachable (superseded once the sync queue replays the create)
        """
        payload = validate_payload(collection, data, creating=True)
        payload.pop("id", None)

        if self.is_online:
            try:
                remote_id = self._remote.add(collection, payload)
            except Exception as e:
                self._report_remote_error(e, "add", collection)
            else:
                self._local_db.put(collection, {**payload, "id": remote_id})
                return remote_id

        self._require_local_store("add", collection)
        local_id = generate_local_id(collection)
        record = {**payload, "id": local_id}
        self._local_db.put(collection, record)
        self._enqueue(SyncOperation.CREATE, collection, record, actor_id)
        logger.info(f"Stored {collection}/{local_id} locally, queued for sync")
        return local_id

    def update(self, collection: str, record_id: str, data: Record, actor_id: str) -> None:
        """Merge ``data`` into a record (last write wins per field)."""
        validate_id(collection, record_id)
        changes = validate_payload(collection, data)
        changes.pop("id", None)
        record_id = self._queue.resolve_id(collection, record_id)

        if self.is_online and not self._awaiting_create(collection, record_id):
            try:
                self._remote.update(collection, record_id, changes)
            except Exception as e:
                self._report_remote_error(e, "update", collection)
            else:
                self._merge_local(collection, record_id, changes, refresh=True)
                return

        self._require_local_store("update", collection)
        self._merge_local(collection, record_id, changes)
        self._enqueue(SyncOperation.UPDATE, collection, {"id": record_id, **changes}, actor_id)

    def delete(self, collection: str, record_id: str, actor_id: str) -> None:
        """Delete a record."""
        get_collection(collection)
        validate_id(collection, record_id)
        record_id = self._queue.resolve_id(collection, record_id)

        if self.is_online and not self._awaiting_create(collection, record_id):
            try:
                self._remote.delete(collection, record_id)
            except Exception as e:
                self._report_remote_error(e, "delete", collection)
            else:
                self._local_db.delete(collection, record_id)
                return

        self._require_local_store("delete", collection)
        self._local_db.delete(collection, record_id)
        self._enqueue(SyncOperation.DELETE, collection, {"id": record_id}, actor_id)

    def _awaiting_create(self, collection: str, record_id: str) -> bool:
        # The remote has never seen this id: the change must queue behind the create
        return record_id in self._queue.pending_creates(collection)

    def _merge_local(self, collection: str, record_id: str, changes: Record, refresh: bool = False) -> None:
        existing = self._local_db.get(collection, record_id)
        if existing is not None:
            self._local_db.put(collection, {**existing, **changes, "id": record_id})
            return
        if not refresh:
            return

        # Not cached yet: fetch the full record so offline reads see the change
        try:
            record = self._remote.get(collection, record_id)
        except Exception as e:
            logger.debug(f"Could not refresh {collection}/{record_id} after update: {e}")
            return
        if record is not None:
            self._local_db.put(collection, self._normalize(record))

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(
        self,
        collection: str,
        callback: Callable[[List[Record]], None],
        tenant_id: Optional[str] = None,
    ) -> Subscription:
        """
        Watch a collection.

        Online, every remote snapshot is normalized, written through and
        passed to ``callback`` together with records created locally and
        not yet synced. Offline, ``callback`` runs once with the
        cached records and no live updates follow.

        Returns:
            Subscription; call ``cancel()`` to stop deliveries
        """
        get_collection(collection)

        if self.is_online:
            filters = {TENANT_FIELD: tenant_id} if tenant_id else None

            def on_snapshot(records: List[Record]) -> None:
                normalized = self._normalize(records)
                self._local_db.put_many(collection, normalized)
                seen = {r["id"] for r in normalized}
                callback(normalized + self._unsynced_local(collection, tenant_id, seen))

            try:
                return self._remote.subscribe(collection, on_snapshot, filters)
            except Exception as e:
                self._report_remote_error(e, "subscribe", collection)

        subscription = Subscription(callback)
        subscription.deliver(self._local_all(collection, tenant_id))
        return subscription

    # =========================================================================
    # SYNC & RECOVERY
    # =========================================================================

    def sync_now(self) -> Optional[DrainResult]:
        """Manual sync; None when offline or already syncing."""
        return self._connection_manager.sync_now()

    def pending_entries(self) -> List[SyncEntry]:
        """Queued mutations, oldest first."""
        return self._queue.entries()

    def force_upgrade(self) -> bool:
        """
        Delete and recreate the local store.

        Discards every unsynced change on this device. Only call this from an
        explicit user action.
        """
        ok = self._local_db.force_upgrade()
        self._connection_manager.refresh_pending()
        return ok

    def clear_local_data(self) -> bool:
        """Alias of ``force_upgrade``."""
        return self.force_upgrade()

    def to_dataframe(self, collection: str, tenant_id: Optional[str] = None) -> pd.DataFrame:
        """Records of a collection as a DataFrame (for reporting views)."""
        records = self.get_all(collection, tenant_id)
        return pd.DataFrame.from_records(records) if records else pd.DataFrame()

    # =========================================================================
    # STATUS & DIAGNOSTICS
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Status information for UI display."""
        store_error = self._local_db.last_error
        remote_error = self.last_remote_error
        return {
            "connection": self._connection_manager.get_status_display(),
            "is_online": self.is_online,
            "is_syncing": self.is_syncing,
            "pending_sync": self.pending_count,
            "local_store": {
                "available": self._local_db.is_available,
                "error": store_error.to_dict() if store_error else None,
            },
            "last_remote_error": remote_error.to_dict() if remote_error else None,
        }

    def close(self) -> None:
        """Cleanup resources."""
        try:
            self._connection_manager.stop_monitoring()
            self._remote.close()
        finally:
            self._local_db.close()


def create_data_service(
    settings: Optional[Settings] = None,
    remote: Optional[RemoteRecordService] = None,
    probe: Optional[Probe] = None,
    local_db: Optional[LocalDatabase] = None,
) -> OfflineDataService:
    """
    Wire the data layer once per process.

    Args:
        settings: Settings (loaded from secrets/environment when None)
        remote: Remote service (Supabase from settings when None)
        probe: Connectivity probe (socket probe when None)
        local_db: Local store (file from settings when None)

    Returns:
        Ready-to-use OfflineDataService
    """
    settings = settings or load_settings()

    if remote is None:
        from invoice_core.remote.supabase_service import SupabaseRemoteService
        remote = SupabaseRemoteService.from_settings(settings)

    if probe is None:
        probe = SocketProbe(settings.supabase_url, timeout=settings.connection_timeout)

    local_db = local_db or LocalDatabase(settings.local_db_path)
    local_db.open()

    sync_queue = SyncQueue(local_db, remote)
    connection_manager = ConnectionManager(
        sync_queue,
        probe=probe,
        check_interval_online=settings.check_interval_online,
        check_interval_offline=settings.check_interval_offline,
        background_sync=settings.background_sync,
    )
    connection_manager.initialize(start_monitoring=settings.start_monitoring)

    service = OfflineDataService(local_db, remote, sync_queue, connection_manager)
    logger.info(f"OfflineDataService initialized. Online: {service.is_online}")
    return service
