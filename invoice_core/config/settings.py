# =============================================================================
# invoice_core/config/settings.py
# Settings loaded from Streamlit secrets with environment fallback
# =============================================================================
"""
Settings for the offline-first data layer.

Expected secrets in .streamlit/secrets.toml:

    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"

    [offline]
    local_db_path = "local_data/invoices.db"
    poll_interval = 5
    background_sync = true

Each value can also come from the environment (SUPABASE_URL, SUPABASE_KEY,
INVOICE_LOCAL_DB_PATH, INVOICE_POLL_INTERVAL, ...). Secrets win over the
environment, the environment wins over defaults.
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import logging

import streamlit as st

from invoice_core.errors.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("local_data") / "invoices.db"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Configuration for the data layer."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    local_db_path: Path = DEFAULT_DB_PATH
    check_interval_online: float = 30.0     # Seconds between probes when online
    check_interval_offline: float = 10.0    # Seconds between probes when offline
    connection_timeout: float = 5.0         # Timeout for connectivity probes
    poll_interval: float = 5.0              # Seconds between subscription polls
    background_sync: bool = True            # Drain on a worker thread
    start_monitoring: bool = True           # Background connectivity probing

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _read_secrets() -> Dict[str, Mapping[str, Any]]:
    """Read the relevant Streamlit secret tables, empty when unavailable."""
    sections: Dict[str, Mapping[str, Any]] = {}
    try:
        for section in ("supabase", "offline"):
            if section in st.secrets:
                sections[section] = dict(st.secrets[section])
    except Exception as e:
        # No secrets.toml outside a Streamlit deployment
        logger.debug(f"Streamlit secrets not available: {e}")
    return sections


def _pick(secret_table: Mapping[str, Any], key: str, env_var: str, default: Any) -> Any:
    if key in secret_table:
        return secret_table[key]
    value = os.getenv(env_var)
    if value is not None and value != "":
        return value
    return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Build Settings from secrets, environment and defaults.

    Args:
        overrides: Explicit values that win over every other source

    Returns:
        Settings instance
    """
    secrets = _read_secrets()
    supabase = secrets.get("supabase", {})
    offline = secrets.get("offline", {})

    settings = Settings(
        supabase_url=_pick(supabase, "url", "SUPABASE_URL", None),
        supabase_key=_pick(supabase, "key", "SUPABASE_KEY", None),
        local_db_path=Path(_pick(offline, "local_db_path", "INVOICE_LOCAL_DB_PATH", DEFAULT_DB_PATH)),
        check_interval_online=float(_pick(offline, "check_interval_online", "INVOICE_CHECK_INTERVAL_ONLINE", 30.0)),
        check_interval_offline=float(_pick(offline, "check_interval_offline", "INVOICE_CHECK_INTERVAL_OFFLINE", 10.0)),
        connection_timeout=float(_pick(offline, "connection_timeout", "INVOICE_CONNECTION_TIMEOUT", 5.0)),
        poll_interval=float(_pick(offline, "poll_interval", "INVOICE_POLL_INTERVAL", 5.0)),
        background_sync=_as_bool(_pick(offline, "background_sync", "INVOICE_BACKGROUND_SYNC", True)),
        start_monitoring=_as_bool(_pick(offline, "start_monitoring", "INVOICE_START_MONITORING", True)),
    )

    for key, value in (overrides or {}).items():
        if not hasattr(settings, key):
            raise ConfigurationError(f"Unknown setting: {key}", config_key=key)
        setattr(settings, key, Path(value) if key == "local_db_path" else value)

    return settings
