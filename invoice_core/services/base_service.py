# =============================================================================
# invoice_core/services/base_service.py
# Base Service Class with Common Functionality
# =============================================================================

from __future__ import annotations
from abc import ABC
from typing import Any, Callable, Dict, List, Optional

from invoice_core.logging import get_logger, LogContext
from invoice_core.offline.data_service import OfflineDataService
from invoice_core.remote.base import Record, Subscription


class BaseService(ABC):
    """
    Abstract base class for entity services.

    Each subclass binds one collection and composes over the shared
    OfflineDataService, which it receives at construction time.

    Usage:
        class ClientService(BaseService):
            collection = "clients"
    """

    collection: str = ""

    def __init__(self, data_service: OfflineDataService):
        self.data_service = data_service
        self.logger = get_logger(self.__class__.__name__)

    def log_operation(self, operation: str) -> LogContext:
        """
        Create a logging context for an operation.

        Usage:
            with self.log_operation("Importing clients"):
                ...
        """
        return LogContext(self.logger, operation)

    # Generic operations bound to ``collection``

    def _get(self, record_id: str) -> Optional[Record]:
        return self.data_service.get(self.collection, record_id)

    def _list(self, company_id: Optional[str] = None) -> List[Record]:
        return self.data_service.get_all(self.collection, company_id)

    def _create(self, data: Dict[str, Any], actor_id: str) -> str:
        return self.data_service.add(self.collection, data, actor_id)

    def _update(self, record_id: str, data: Dict[str, Any], actor_id: str) -> None:
        self.data_service.update(self.collection, record_id, data, actor_id)

    def _delete(self, record_id: str, actor_id: str) -> None:
        self.data_service.delete(self.collection, record_id, actor_id)

    def _subscribe(
        self,
        company_id: str,
        callback: Callable[[List[Record]], None],
    ) -> Subscription:
        return self.data_service.subscribe(self.collection, callback, company_id)


class CompanyDocumentService(BaseService):
    """
    Shared operations for company-scoped documents created by sellers
    (invoices, receipts, quotations).
    """

    def list_for_company(self, company_id: str) -> List[Record]:
        return self._list(company_id)

    def list_by_seller(self, company_id: str, seller_id: str) -> List[Record]:
        """Documents of a company created by one seller."""
        return [
            record for record in self._list(company_id)
            if record.get("createdBy") == seller_id
        ]

    def get_document(self, record_id: str) -> Optional[Record]:
        return self._get(record_id)

    def create_document(self, data: Dict[str, Any], user_id: str) -> str:
        return self._create(data, user_id)

    def update_document(self, record_id: str, data: Dict[str, Any], user_id: str) -> None:
        self._update(record_id, data, user_id)

    def delete_document(self, record_id: str, user_id: str) -> None:
        self._delete(record_id, user_id)

    def subscribe_to_documents(
        self,
        company_id: str,
        callback: Callable[[List[Record]], None],
    ) -> Subscription:
        return self._subscribe(company_id, callback)
