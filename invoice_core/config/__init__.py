# =============================================================================
# invoice_core/config/__init__.py
# Runtime configuration
# =============================================================================

from .settings import Settings, load_settings, DEFAULT_DB_PATH

__all__ = ["Settings", "load_settings", "DEFAULT_DB_PATH"]
