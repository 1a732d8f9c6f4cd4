# =============================================================================
# invoice_core/remote/__init__.py
# Remote Record Service adapters
# =============================================================================

from invoice_core.remote.base import (
    RemoteRecordService,
    Subscription,
    Record,
    Filters,
    SnapshotCallback,
)
from invoice_core.remote.memory import InMemoryRemoteService
from invoice_core.remote.supabase_service import (
    SupabaseRemoteService,
    create_supabase_client,
)

__all__ = [
    "RemoteRecordService",
    "Subscription",
    "Record",
    "Filters",
    "SnapshotCallback",
    "InMemoryRemoteService",
    "SupabaseRemoteService",
    "create_supabase_client",
]
