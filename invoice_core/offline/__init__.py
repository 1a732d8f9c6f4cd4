# =============================================================================
# invoice_core/offline/__init__.py
# Offline-First Data Layer for the invoicing application
# =============================================================================
"""
Offline-First Data Layer

The app keeps working without connectivity: reads fall back to the local
store, writes are queued and replayed when the connection comes back.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                    OFFLINE-FIRST DATA LAYER                      │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │   Entity services (clients, invoices, receipts, ...)      │  │
│   └──────────────────────────────────────────────────────────┘  │
│                            │                                     │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                 OfflineDataService                        │  │
│   │      get / get_all / add / update / delete / subscribe    │  │
│   └──────────────────────────────────────────────────────────┘  │
│              │                     │                 │           │
│              ▼                     ▼                 ▼           │
│   ┌──────────────────┐  ┌──────────────────┐  ┌────────────┐    │
│   │ RemoteRecord     │  │  LocalDatabase   │  │ SyncQueue  │    │
│   │ Service(Supabase)│  │    (SQLite)      │  │ (in SQLite)│    │
│   └──────────────────┘  └──────────────────┘  └────────────┘    │
│                                                     ▲           │
│                          ┌──────────────────┐       │           │
│                          │ ConnectionManager│───────┘           │
│                          │ (online/offline) │  drain on         │
│                          └──────────────────┘  reconnect        │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from invoice_core.offline import create_data_service

service = create_data_service()
service.add("clients", {"companyId": "co1", "name": "Acme"}, actor_id="u1")
print(service.is_online, service.pending_count)
"""

from invoice_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
    SocketProbe,
)

from invoice_core.offline.local_database import LocalDatabase

from invoice_core.offline.sync_queue import (
    SyncQueue,
    SyncEntry,
    SyncOperation,
    DrainResult,
    generate_local_id,
)

from invoice_core.offline.timestamps import normalize_timestamps

from invoice_core.offline.data_service import (
    OfflineDataService,
    create_data_service,
)

__all__ = [
    # Connection Management
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "SocketProbe",
    # Local Database
    "LocalDatabase",
    # Sync Queue
    "SyncQueue",
    "SyncEntry",
    "SyncOperation",
    "DrainResult",
    "generate_local_id",
    # Timestamps
    "normalize_timestamps",
    # Data Service (Main API)
    "OfflineDataService",
    "create_data_service",
]
