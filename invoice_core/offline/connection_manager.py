# =============================================================================
# invoice_core/offline/connection_manager.py
# Connection Status Detection and Management
# =============================================================================
"""
ConnectionManager - tracks online/offline state and drives sync.

Features:
- Exactly two states: online and offline
- Platform signals via ``set_online`` plus an optional probe
- Offline -> online triggers one sync queue drain
- Manual sync while online and idle
- Periodic background probing
- Event callbacks for state changes
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse
import logging

from invoice_core.offline.sync_queue import DrainResult, SyncQueue

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class ConnectionState:
    """Current connection and sync state with metadata."""
    status: ConnectionStatus = ConnectionStatus.OFFLINE
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    is_syncing: bool = False
    pending_changes: int = 0
    last_sync: Optional[datetime] = None
    last_sync_result: Optional[DrainResult] = None
    error_message: Optional[str] = None


class SocketProbe:
    """
    Connectivity probe: TCP connect to well-known DNS resolvers, then to the
    Supabase host when one is configured.
    """

    HOSTS: Sequence[Tuple[str, int]] = (
        ("8.8.8.8", 53),        # Google DNS
        ("1.1.1.1", 53),        # Cloudflare DNS
        ("208.67.222.222", 53), # OpenDNS
    )

    def __init__(self, supabase_url: Optional[str] = None, timeout: float = 5.0):
        self.supabase_url = supabase_url
        self.timeout = timeout

    def _connect(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection((host, port), timeout=self.timeout):
                return True
        except OSError:
            return False

    def check_internet(self) -> bool:
        return any(self._connect(host, port) for host, port in self.HOSTS)

    def check_supabase(self) -> bool:
        if not self.supabase_url:
            return True
        parsed = urlparse(self.supabase_url)
        if not parsed.hostname:
            return False
        return self._connect(parsed.hostname, parsed.port or 443)

    def __call__(self) -> bool:
        return self.check_internet() and self.check_supabase()


class ConnectionManager:
    """
    Online/offline state machine that triggers sync queue drains.

    Usage:
        manager = ConnectionManager(sync_queue, probe=SocketProbe(url))
        manager.initialize()
        manager.set_online(False)   # platform says we lost connectivity
        manager.set_online(True)    # back online: one drain runs
    """

    def __init__(
        self,
        sync_queue: SyncQueue,
        probe: Optional[Probe] = None,
        check_interval_online: float = 30.0,
        check_interval_offline: float = 10.0,
        background_sync: bool = True,
    ):
        """
        Args:
            sync_queue: Queue drained on reconnection
            probe: Returns True when the remote service is reachable
            check_interval_online: Seconds between probes when online
            check_interval_offline: Seconds between probes when offline
            background_sync: Drain on a worker thread instead of inline
        """
        self._queue = sync_queue
        self._probe = probe
        self.check_interval_online = check_interval_online
        self.check_interval_offline = check_interval_offline
        self.background_sync = background_sync

        self._state = ConnectionState()
        self._state_lock = threading.Lock()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._monitor_thread: Optional[threading.Thread] = None
        self._sync_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()
        self._initialized = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        return self._state.status is ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return self._state.status is ConnectionStatus.OFFLINE

    @property
    def is_syncing(self) -> bool:
        return self._queue.is_draining

    @property
    def pending_changes(self) -> int:
        return self._state.pending_changes

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self, start_monitoring: bool = True, initial_online: Optional[bool] = None) -> None:
        """
        Read the initial state and optionally start background probing.

        Args:
            start_monitoring: Whether to start the probe thread
            initial_online: Known initial state; probes when None
        """
        if self._initialized:
            return

        online = self._run_probe() if initial_online is None else initial_online
        with self._state_lock:
            self._state.status = ConnectionStatus.ONLINE if online else ConnectionStatus.OFFLINE
            self._state.last_check = datetime.now()
            if online:
                self._state.last_online = self._state.last_check
        self.refresh_pending()

        # Changes left over from a previous session
        if online and self._state.pending_changes:
            self._trigger_sync()

        if start_monitoring and self._probe is not None:
            self.start_monitoring()

        self._initialized = True
        logger.info(f"ConnectionManager initialized. Status: {self._state.status.value}")

    def _run_probe(self) -> bool:
        if self._probe is None:
            return True
        try:
            return bool(self._probe())
        except Exception as e:
            self._state.error_message = str(e)
            logger.debug(f"Connectivity probe failed: {e}")
            return False

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def set_online(self, online: bool) -> bool:
        """
        Apply a platform connectivity signal.

        Returns:
            True if the state changed
        """
        with self._state_lock:
            old_status = self._state.status
            new_status = ConnectionStatus.ONLINE if online else ConnectionStatus.OFFLINE
            if old_status is new_status:
                return False

            self._state.status = new_status
            if online:
                self._state.last_online = datetime.now()
                self._state.consecutive_failures = 0
                self._state.error_message = None

        logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
        self._notify_callbacks()

        if online:
            logger.info("Connection restored, triggering sync")
            self._trigger_sync()
        return True

    def check_connection(self) -> ConnectionState:
        """Probe now and apply the result."""
        online = self._run_probe()
        self._state.last_check = datetime.now()
        if not online:
            self._state.consecutive_failures += 1
        self.set_online(online)
        return self._state

    def force_offline(self) -> None:
        """Force offline mode (for testing or user preference)."""
        self.set_online(False)
        logger.info("Forced offline mode")

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync_now(self) -> Optional[DrainResult]:
        """
        User-initiated drain.

        Returns:
            DrainResult, or None when offline or a drain is already running
        """
        if not self.is_online:
            logger.debug("Cannot sync: offline")
            return None
        if self.is_syncing:
            logger.debug("Sync already in progress")
            return None
        return self._run_drain()

    def _trigger_sync(self) -> None:
        if self.is_syncing:
            return
        if self.background_sync:
            self._sync_thread = threading.Thread(
                target=self._run_drain,
                daemon=True,
                name="SyncQueueDrain",
            )
            self._sync_thread.start()
        else:
            self._run_drain()

    def wait_for_sync(self, timeout: Optional[float] = None) -> None:
        """Block until a background drain started by a transition finishes."""
        thread = self._sync_thread
        if thread is not None:
            thread.join(timeout=timeout)

    def _run_drain(self) -> Optional[DrainResult]:
        started = threading.Event()

        def on_start() -> None:
            started.set()
            self._state.is_syncing = True
            self._notify_callbacks()

        try:
            result = self._queue.drain(on_start=on_start)
        except Exception as e:
            logger.error(f"Sync error: {e}", exc_info=True)
            result = None
            self._state.error_message = str(e)

        if not started.is_set():
            # Coalesced into a drain that is already running
            return None

        self._state.is_syncing = False
        self._state.last_sync = datetime.now()
        self._state.last_sync_result = result
        self.refresh_pending()
        return result

    def refresh_pending(self) -> int:
        """Recount the sync queue and notify listeners."""
        self._state.pending_changes = self._queue.pending_count()
        self._notify_callbacks()
        return self._state.pending_changes

    # =========================================================================
    # MONITORING
    # =========================================================================

    def start_monitoring(self) -> None:
        """Start background connection monitoring."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="ConnectionMonitor",
        )
        self._monitor_thread.start()
        logger.debug("Connection monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background connection monitoring."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
        logger.debug("Connection monitoring stopped")

    def _monitoring_loop(self) -> None:
        while not self._stop_monitoring.is_set():
            interval = (
                self.check_interval_online
                if self.is_online
                else self.check_interval_offline
            )
            if self._stop_monitoring.wait(timeout=interval):
                break
            try:
                self.check_connection()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Register a callback for connection/sync state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get status information for UI display."""
        result = self._state.last_sync_result
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "is_syncing": self.is_syncing,
            "pending_changes": self._state.pending_changes,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "last_sync_succeeded": result.succeeded if result else None,
            "last_sync_failed": result.failed if result else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
