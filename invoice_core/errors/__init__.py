# =============================================================================
# invoice_core/errors/__init__.py
# Centralized Error Handling for the invoicing data layer
# =============================================================================

from .exceptions import (
    InvoiceAppError,
    ConfigurationError,
    RecordValidationError,
    RemoteServiceError,
    ConnectivityError,
    PermissionDeniedError,
    LocalStoreError,
    LocalStoreUnavailableError,
    SyncReplayError,
)

from .handlers import (
    handle_error,
    user_message_for,
)

__all__ = [
    # Exceptions
    "InvoiceAppError",
    "ConfigurationError",
    "RecordValidationError",
    "RemoteServiceError",
    "ConnectivityError",
    "PermissionDeniedError",
    "LocalStoreError",
    "LocalStoreUnavailableError",
    "SyncReplayError",
    # Handlers
    "handle_error",
    "user_message_for",
]
