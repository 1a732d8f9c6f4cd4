# =============================================================================
# invoice_core/remote/supabase_service.py
# Supabase implementation of the remote record service
# =============================================================================
"""
SupabaseRemoteService - remote record service over supabase-py.

Each collection is a Supabase table with a text/uuid ``id`` primary key that
the database assigns on insert. Timestamps arrive as ISO-8601 strings; those
are the native representation converted by the timestamp normalizer.
Subscriptions poll the table and deliver the snapshot whenever it changes.
"""

from __future__ import annotations
import re
import threading
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

import httpx
import numpy as np
import pandas as pd

from invoice_core.config import Settings
from invoice_core.errors import (
    ConfigurationError,
    ConnectivityError,
    PermissionDeniedError,
    RemoteServiceError,
)
from invoice_core.remote.base import (
    Filters,
    Record,
    RemoteRecordService,
    SnapshotCallback,
    Subscription,
)

logger = logging.getLogger(__name__)

# timestamp / timestamptz as serialised by PostgREST; plain dates are left alone
ISO_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d{1,9})?)?(Z|[+-]\d{2}(:?\d{2})?)?$"
)

PERMISSION_CODES = {"42501", "PGRST301", "PGRST302", "401", "403"}


def _to_wire(value: Any) -> Any:
    """Make a field map JSON-safe for PostgREST."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        # numeric columns accept the exact string form
        return str(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, dict):
        return {k: _to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_wire(v) for v in value]
    return value


def create_supabase_client(settings: Settings):
    """Create a supabase-py client from settings."""
    if not settings.has_supabase:
        raise ConfigurationError(
            "Supabase credentials not configured (set [supabase] url/key or SUPABASE_URL/SUPABASE_KEY)",
            config_key="supabase",
        )
    from supabase import create_client

    return create_client(settings.supabase_url, settings.supabase_key)


class SupabaseRemoteService(RemoteRecordService):
    """
    Remote record service backed by Supabase tables.

    Usage:
        service = SupabaseRemoteService.from_settings(load_settings())
        service.list("clients", {"companyId": "co1"})
    """

    BATCH_SIZE = 1000  # PostgREST default max rows per request

    def __init__(self, client, poll_interval: float = 5.0):
        """
        Args:
            client: supabase-py Client
            poll_interval: Seconds between subscription polls
        """
        self.client = client
        self.poll_interval = poll_interval

    @classmethod
    def from_settings(cls, settings: Settings) -> SupabaseRemoteService:
        return cls(create_supabase_client(settings), poll_interval=settings.poll_interval)

    # =========================================================================
    # ERROR MAPPING
    # =========================================================================

    def _translate(self, error: Exception, collection: str, record_id: Optional[str] = None) -> RemoteServiceError:
        if isinstance(error, RemoteServiceError):
            return error
        if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
            return ConnectivityError(str(error), collection=collection, record_id=record_id)

        code = str(getattr(error, "code", "") or "")
        if code in PERMISSION_CODES:
            return PermissionDeniedError(
                getattr(error, "message", None) or str(error),
                collection=collection,
                record_id=record_id,
                details={"remote_code": code},
            )
        return RemoteServiceError(
            getattr(error, "message", None) or str(error),
            collection=collection,
            record_id=record_id,
            details={"remote_code": code} if code else {},
        )

    # =========================================================================
    # REMOTE OPERATIONS
    # =========================================================================

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        try:
            response = (
                self.client.table(collection)
                .select("*")
                .eq("id", record_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise self._translate(e, collection, record_id) from e
        return response.data[0] if response.data else None

    def list(self, collection: str, filters: Optional[Filters] = None) -> List[Record]:
        """Fetch all matching rows, paging past the PostgREST row limit."""
        all_data: List[Record] = []
        offset = 0
        try:
            while True:
                query = self.client.table(collection).select("*")
                for key, value in (filters or {}).items():
                    query = query.eq(key, _to_wire(value))
                response = query.order("id").range(offset, offset + self.BATCH_SIZE - 1).execute()

                if not response.data:
                    break
                all_data.extend(response.data)
                if len(response.data) < self.BATCH_SIZE:
                    break
                offset += self.BATCH_SIZE
        except Exception as e:
            raise self._translate(e, collection) from e
        return all_data

    def add(self, collection: str, data: Record) -> str:
        payload = _to_wire({k: v for k, v in data.items() if k != "id"})
        try:
            response = self.client.table(collection).insert(payload).execute()
        except Exception as e:
            raise self._translate(e, collection) from e
        if not response.data or "id" not in response.data[0]:
            raise RemoteServiceError("Insert returned no id", collection=collection)
        return str(response.data[0]["id"])

    def update(self, collection: str, record_id: str, data: Record) -> None:
        payload = _to_wire({k: v for k, v in data.items() if k != "id"})
        try:
            response = self.client.table(collection).update(payload).eq("id", record_id).execute()
        except Exception as e:
            raise self._translate(e, collection, record_id) from e
        if not response.data:
            raise RemoteServiceError("No document to update", collection=collection, record_id=record_id)

    def delete(self, collection: str, record_id: str) -> None:
        try:
            self.client.table(collection).delete().eq("id", record_id).execute()
        except Exception as e:
            raise self._translate(e, collection, record_id) from e

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        filters: Optional[Filters] = None,
    ) -> Subscription:
        """
        Poll ``collection`` and deliver the snapshot whenever it changes.

        The first snapshot is fetched synchronously so connectivity errors
        reach the caller.
        """
        stop = threading.Event()
        subscription = Subscription(on_snapshot, on_cancel=stop.set)
        last = self.list(collection, filters)
        subscription.deliver(last)

        def poll() -> None:
            nonlocal last
            while not stop.wait(self.poll_interval):
                try:
                    records = self.list(collection, filters)
                except RemoteServiceError as e:
                    logger.debug(f"Subscription poll failed for {collection}: {e}")
                    continue
                if records != last:
                    last = records
                    subscription.deliver(records)

        threading.Thread(target=poll, daemon=True, name=f"Subscription-{collection}").start()
        return subscription

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================

    def is_remote_timestamp(self, value: Any) -> bool:
        return isinstance(value, str) and ISO_TIMESTAMP_RE.match(value) is not None

    def to_datetime(self, value: Any) -> datetime:
        return pd.Timestamp(value).to_pydatetime()

    def close(self) -> None:
        """Close the underlying PostgREST HTTP session."""
        try:
            postgrest = getattr(self.client, "postgrest", None)
            session = getattr(postgrest, "session", None)
            if session is not None:
                session.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing Supabase client: {e}")
