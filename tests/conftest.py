# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import pytest
import pandas as pd
from unittest.mock import MagicMock

from invoice_core.offline.connection_manager import ConnectionManager
from invoice_core.offline.data_service import OfflineDataService
from invoice_core.offline.local_database import LocalDatabase, MEMORY_PATH
from invoice_core.offline.sync_queue import SyncQueue
from invoice_core.remote.memory import InMemoryRemoteService


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def sample_clients():
    """Three clients of company co1, timestamps in the remote's native type"""
    return [
        {
            "id": f"client-{i}",
            "companyId": "co1",
            "name": name,
            "email": f"billing@{name.lower()}.com",
            "createdAt": pd.Timestamp(f"2024-01-0{i}T09:30:00"),
        }
        for i, name in enumerate(["Acme", "Globex", "Initech"], start=1)
    ]


@pytest.fixture
def sample_invoice():
    return {
        "id": "INV-1",
        "companyId": "co1",
        "clientId": "client-1",
        "status": "draft",
        "total": 1250.0,
        "items": [{"description": "Consulting", "quantity": 5, "unitPrice": 250.0}],
        "createdBy": "seller-1",
        "createdAt": pd.Timestamp("2024-02-01T08:00:00"),
    }


# =============================================================================
# DATA LAYER FIXTURES
# =============================================================================

@pytest.fixture
def local_db():
    """Opened in-memory local store"""
    store = LocalDatabase(MEMORY_PATH)
    assert store.open()
    yield store
    store.close()


@pytest.fixture
def remote():
    return InMemoryRemoteService()


@pytest.fixture
def sync_queue(local_db, remote):
    return SyncQueue(local_db, remote)


@pytest.fixture
def make_data_service(local_db, remote, sync_queue):
    """
    Factory for a data service with inline (foreground) sync and no
    background probing, so transitions are deterministic.
    """
    def _make(online=True, store=None):
        store = store or local_db
        queue = sync_queue if store is local_db else SyncQueue(store, remote)
        manager = ConnectionManager(queue, probe=None, background_sync=False)
        manager.initialize(start_monitoring=False, initial_online=online)
        return OfflineDataService(store, remote, queue, manager)

    return _make


@pytest.fixture
def data_service(make_data_service):
    return make_data_service(online=True)


@pytest.fixture
def offline_service(make_data_service):
    return make_data_service(online=False)


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit where the error handlers and settings use it"""
    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.secrets = {}
    mock_st.cache_data = lambda f: f
    mock_st.cache_resource = lambda f: f

    monkeypatch.setattr("invoice_core.errors.handlers.st", mock_st)
    monkeypatch.setattr("invoice_core.config.settings.st", mock_st)

    yield mock_st


@pytest.fixture
def mock_supabase():
    """
    Mock supabase-py client whose query builders return themselves, so any
    chain of select/eq/order/range/limit ends at the same ``execute``.
    """
    mock_client = MagicMock()
    query = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "order", "range", "limit"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=[])
    mock_client.table.return_value = query
    mock_client.query = query
    return mock_client
