# =============================================================================
# invoice_core/remote/base.py
# Remote Record Service Interface
# =============================================================================
"""
Abstract interface for the hosted document store.

The data layer only needs: get by id, equality-filtered list, add (the remote
assigns the id), partial update, delete, and a per-collection subscription
that delivers the full current snapshot on every change.
"""

from __future__ import annotations
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Filters = Dict[str, Any]
SnapshotCallback = Callable[[List[Record]], None]


class Subscription:
    """
    Cancellable subscription handle.

    ``deliver`` and ``cancel`` share a lock, so once ``cancel()`` returns no
    callback is running and none will start. Cancelling from inside the
    callback is allowed.
    """

    def __init__(self, callback: SnapshotCallback, on_cancel: Optional[Callable[[], None]] = None):
        self._callback = callback
        self._on_cancel = on_cancel
        self._lock = threading.RLock()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def deliver(self, records: List[Record]) -> bool:
        """
        Invoke the callback unless cancelled.

        Returns:
            True if the callback ran
        """
        with self._lock:
            if self._cancelled:
                return False
            try:
                self._callback(records)
            except Exception as e:
                logger.error(f"Error in subscription callback: {e}", exc_info=True)
            return True

    def cancel(self) -> None:
        """Stop deliveries. Idempotent."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            on_cancel, self._on_cancel = self._on_cancel, None

        if on_cancel is not None:
            try:
                on_cancel()
            except Exception as e:
                logger.error(f"Error releasing subscription: {e}")

    def __call__(self) -> None:
        self.cancel()


class RemoteRecordService(ABC):
    """
    Capability the data service consumes to reach the remote document store.

    Implementations raise ``ConnectivityError`` when the service cannot be
    reached, ``PermissionDeniedError`` when the caller lacks access, and
    ``RemoteServiceError`` for anything else.
    """

    @abstractmethod
    def get(self, collection: str, record_id: str) -> Optional[Record]:
        """Fetch one record (including ``id``) or None when it does not exist."""

    @abstractmethod
    def list(self, collection: str, filters: Optional[Filters] = None) -> List[Record]:
        """Fetch every record matching all equality filters."""

    @abstractmethod
    def add(self, collection: str, data: Record) -> str:
        """Create a record and return the id the remote assigned."""

    @abstractmethod
    def update(self, collection: str, record_id: str, data: Record) -> None:
        """Merge ``data`` into an existing record."""

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> None:
        """Delete a record."""

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        filters: Optional[Filters] = None,
    ) -> Subscription:
        """Deliver the full filtered snapshot now and after every change."""

    @abstractmethod
    def is_remote_timestamp(self, value: Any) -> bool:
        """Whether ``value`` is this service's native timestamp representation."""

    @abstractmethod
    def to_datetime(self, value: Any) -> datetime:
        """Convert a native timestamp; the result must not be recognised again."""

    def close(self) -> None:
        """Release client resources."""
