# =============================================================================
# invoice_core/errors/handlers.py
# Error Handling Utilities for the invoicing data layer
# =============================================================================

from __future__ import annotations
import traceback
from typing import Optional

import streamlit as st

from invoice_core.logging import get_logger
from .exceptions import (
    InvoiceAppError,
    ConnectivityError,
    PermissionDeniedError,
    LocalStoreUnavailableError,
)

logger = get_logger(__name__)


def user_message_for(error: Exception) -> str:
    """
    Build the message shown to the user for an error.

    Permission, connectivity and local-store failures get distinct wording so
    the user knows whether to wait, ask an administrator, or run recovery.
    """
    if isinstance(error, PermissionDeniedError):
        return "You do not have permission to access this company's data."
    if isinstance(error, ConnectivityError):
        return "You are offline. Changes are saved on this device and will sync later."
    if isinstance(error, LocalStoreUnavailableError):
        return (
            "Local storage is unavailable. Use 'Reset local data' in settings "
            "to recreate it (unsynced changes on this device will be lost)."
        )
    if isinstance(error, InvoiceAppError):
        return error.message
    return str(error)


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Centralized error handling function.

    Args:
        error: The exception to handle
        show_user_message: Whether to display the error in the Streamlit UI
        log_error: Whether to log the error
        user_message: Custom message to show user (derived from error if None)
    """
    message = user_message or user_message_for(error)

    if isinstance(error, InvoiceAppError):
        code = error.code
        details = error.details
        recoverable = error.recoverable
    else:
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        recoverable = True

    if log_error:
        logger.error(
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=error,
        )

    if show_user_message:
        if isinstance(error, ConnectivityError):
            st.warning(message)
        elif recoverable:
            st.error(f"Error: {message}")
        else:
            st.error(f"Critical Error: {message}. Please contact support.")
