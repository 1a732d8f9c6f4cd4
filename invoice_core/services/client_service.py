# =============================================================================
# invoice_core/services/client_service.py
# Client operations
# =============================================================================

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional

from invoice_core.remote.base import Record, Subscription
from invoice_core.services.base_service import BaseService


class ClientService(BaseService):
    """Clients of a company."""

    collection = "clients"

    def get_clients(self, company_id: str) -> List[Record]:
        return self._list(company_id)

    def get_client(self, client_id: str) -> Optional[Record]:
        return self._get(client_id)

    def create_client(self, data: Dict[str, Any], user_id: str) -> str:
        return self._create(data, user_id)

    def update_client(self, client_id: str, data: Dict[str, Any], user_id: str) -> None:
        self._update(client_id, data, user_id)

    def delete_client(self, client_id: str, user_id: str) -> None:
        self._delete(client_id, user_id)

    def subscribe_to_clients(
        self,
        company_id: str,
        callback: Callable[[List[Record]], None],
    ) -> Subscription:
        return self._subscribe(company_id, callback)
