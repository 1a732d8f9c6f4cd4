# =============================================================================
# invoice_core/__init__.py
# Offline-first data layer for the invoicing application
# =============================================================================

__version__ = "0.1.0"
