# =============================================================================
# tests/unit/test_connection_manager.py
# Unit Tests for ConnectionManager
# =============================================================================

import socket

import pytest

from invoice_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionStatus,
    SocketProbe,
)
from invoice_core.offline.sync_queue import DrainResult, SyncEntry, SyncOperation


def queue_update(sync_queue, record_id="INV-1", timestamp=1, **changes):
    sync_queue.enqueue(SyncEntry.new(
        SyncOperation.UPDATE, "invoices", {"id": record_id, **changes}, "u1", timestamp=timestamp
    ))


@pytest.fixture
def seeded_remote(remote):
    remote.seed("invoices", [{"id": "INV-1", "companyId": "co1", "clientId": "c1", "status": "draft"}])
    return remote


def make_manager(sync_queue, online, probe=None, background_sync=False):
    manager = ConnectionManager(sync_queue, probe=probe, background_sync=background_sync)
    manager.initialize(start_monitoring=False, initial_online=online)
    return manager


class TestTransitions:

    def test_initial_state(self, sync_queue):
        assert make_manager(sync_queue, online=True).status is ConnectionStatus.ONLINE
        assert make_manager(sync_queue, online=False).status is ConnectionStatus.OFFLINE

    def test_initial_state_from_probe(self, sync_queue):
        manager = ConnectionManager(sync_queue, probe=lambda: False, background_sync=False)
        manager.initialize(start_monitoring=False)

        assert manager.is_offline

    def test_same_state_is_noop(self, sync_queue):
        manager = make_manager(sync_queue, online=True)
        events = []
        manager.register_callback(lambda state: events.append(state.status))

        assert manager.set_online(True) is False
        assert events == []

    def test_going_offline_does_not_sync(self, sync_queue, seeded_remote):
        manager = make_manager(sync_queue, online=True)
        queue_update(sync_queue, status="paid")

        assert manager.set_online(False) is True
        assert manager.is_offline
        assert sync_queue.pending_count() == 1

    def test_reconnect_drains_queue(self, sync_queue, seeded_remote):
        manager = make_manager(sync_queue, online=False)
        queue_update(sync_queue, status="paid")

        assert manager.set_online(True) is True

        assert sync_queue.pending_count() == 0
        assert seeded_remote.records("invoices")["INV-1"]["status"] == "paid"
        assert manager.state.last_sync_result == DrainResult(1, 0)
        assert manager.pending_changes == 0
        assert not manager.is_syncing

    def test_reconnect_drains_in_background(self, sync_queue, seeded_remote):
        manager = make_manager(sync_queue, online=False, background_sync=True)
        queue_update(sync_queue, status="paid")

        manager.set_online(True)
        manager.wait_for_sync(timeout=5)

        assert sync_queue.pending_count() == 0

    def test_startup_online_with_pending_changes_drains(self, sync_queue, seeded_remote):
        queue_update(sync_queue, status="paid")

        make_manager(sync_queue, online=True)

        assert sync_queue.pending_count() == 0

    def test_callbacks_observe_syncing_flag(self, sync_queue, seeded_remote):
        manager = make_manager(sync_queue, online=False)
        queue_update(sync_queue, status="paid")
        seen = []
        manager.register_callback(lambda state: seen.append((state.status, state.is_syncing)))

        manager.set_online(True)

        assert (ConnectionStatus.ONLINE, True) in seen
        assert seen[-1] == (ConnectionStatus.ONLINE, False)

    def test_failing_callback_does_not_break_transition(self, sync_queue):
        manager = make_manager(sync_queue, online=True)

        def broken(state):
            raise RuntimeError("boom")

        manager.register_callback(broken)

        assert manager.set_online(False) is True
        manager.unregister_callback(broken)


class TestManualSync:

    def test_sync_now_offline_returns_none(self, sync_queue):
        manager = make_manager(sync_queue, online=False)
        queue_update(sync_queue, status="paid")

        assert manager.sync_now() is None
        assert sync_queue.pending_count() == 1

    def test_sync_now_online(self, sync_queue, seeded_remote):
        manager = make_manager(sync_queue, online=True)
        queue_update(sync_queue, status="paid")

        assert manager.sync_now() == DrainResult(1, 0)
        assert manager.state.last_sync is not None

    def test_sync_now_with_failures_keeps_entries(self, sync_queue, seeded_remote):
        manager = make_manager(sync_queue, online=True)
        queue_update(sync_queue, status="paid")
        seeded_remote.offline = True

        assert manager.sync_now() == DrainResult(0, 1)
        assert manager.pending_changes == 1


class TestProbing:

    def test_check_connection_applies_probe_result(self, sync_queue):
        reachable = {"value": True}
        manager = ConnectionManager(sync_queue, probe=lambda: reachable["value"], background_sync=False)
        manager.initialize(start_monitoring=False)

        reachable["value"] = False
        state = manager.check_connection()

        assert state.status is ConnectionStatus.OFFLINE
        assert state.consecutive_failures == 1

    def test_probe_exception_means_offline(self, sync_queue):
        def probe():
            raise OSError("network down")

        manager = ConnectionManager(sync_queue, probe=probe, background_sync=False)
        manager.initialize(start_monitoring=False)

        assert manager.is_offline
        assert "network down" in manager.get_status_display()["error"]

    def test_monitoring_thread_starts_and_stops(self, sync_queue):
        manager = ConnectionManager(
            sync_queue, probe=lambda: True, check_interval_online=60, background_sync=False
        )
        manager.initialize(start_monitoring=True)

        manager.stop_monitoring()

        assert not manager._monitor_thread.is_alive()

    def test_status_display(self, sync_queue):
        manager = make_manager(sync_queue, online=True)

        display = manager.get_status_display()

        assert display["status"] == "online"
        assert display["is_online"] is True
        assert display["is_syncing"] is False
        assert display["pending_changes"] == 0


class TestSocketProbe:

    def test_unreachable_hosts(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise OSError("unreachable")

        monkeypatch.setattr(socket, "create_connection", refuse)

        assert SocketProbe("https://demo.supabase.co", timeout=0.1)() is False

    def test_reachable_hosts(self, monkeypatch):
        connected = []

        class FakeSocket:
            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

        def connect(address, timeout=None):
            connected.append(address)
            return FakeSocket()

        monkeypatch.setattr(socket, "create_connection", connect)

        assert SocketProbe("https://demo.supabase.co", timeout=0.1)() is True
        assert ("demo.supabase.co", 443) in connected

    def test_no_supabase_url_only_checks_internet(self):
        assert SocketProbe(None).check_supabase() is True
