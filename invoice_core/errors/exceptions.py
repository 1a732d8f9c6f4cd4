# =============================================================================
# invoice_core/errors/exceptions.py
# Custom Exception Hierarchy for the invoicing data layer
# =============================================================================

from typing import Optional, Dict, Any


class InvoiceAppError(Exception):
    """
    Base exception for all invoicing data layer errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "SYNC_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "INV_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# CONFIGURATION / VALIDATION
# =============================================================================

class ConfigurationError(InvoiceAppError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


class RecordValidationError(InvoiceAppError):
    """Raised when a record or call fails validation at the service boundary"""

    def __init__(
        self,
        message: str,
        collection: Optional[str] = None,
        field: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if collection:
            details["collection"] = collection
        if field:
            details["field"] = field

        super().__init__(
            message=message,
            code="DATA_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# REMOTE SERVICE EXCEPTIONS
# =============================================================================

class RemoteServiceError(InvoiceAppError):
    """Raised when the remote record service rejects or fails an operation"""

    kind = "remote"

    def __init__(
        self,
        message: str,
        collection: Optional[str] = None,
        record_id: Optional[str] = None,
        code: str = "REMOTE_001",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if collection:
            details["collection"] = collection
        if record_id:
            details["record_id"] = record_id

        super().__init__(
            message=message,
            code=code,
            details=details,
            **kwargs,
        )


class ConnectivityError(RemoteServiceError):
    """Raised when the remote service cannot be reached"""

    kind = "connectivity"

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="REMOTE_002", **kwargs)


class PermissionDeniedError(RemoteServiceError):
    """Raised when the caller lacks permission for a tenant/collection"""

    kind = "permission"

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="REMOTE_003", **kwargs)


# =============================================================================
# LOCAL STORE / SYNC EXCEPTIONS
# =============================================================================

class LocalStoreError(InvoiceAppError):
    """Raised when the local record store fails"""

    def __init__(
        self,
        message: str,
        db_path: Optional[str] = None,
        code: str = "LOCAL_001",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if db_path:
            details["db_path"] = db_path

        super().__init__(
            message=message,
            code=code,
            details=details,
            **kwargs,
        )


class LocalStoreUnavailableError(LocalStoreError):
    """
    Raised (or reported) when the local store could not be opened or upgraded.

    The store is inert until the user runs the destructive recovery action.
    """

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="LOCAL_002", **kwargs)


class SyncReplayError(InvoiceAppError):
    """Raised when a queued mutation cannot be replayed against the remote"""

    def __init__(
        self,
        message: str,
        entry_id: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if entry_id:
            details["entry_id"] = entry_id
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="SYNC_001",
            details=details,
            **kwargs,
        )
