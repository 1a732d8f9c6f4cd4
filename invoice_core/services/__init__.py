# =============================================================================
# invoice_core/services/__init__.py
# Entity services over the offline data layer
# =============================================================================
"""
Entity services for the invoicing application.

Usage Example:
-------------
    from invoice_core.offline import create_data_service
    from invoice_core.services import build_services

    services = build_services(create_data_service())
    client_id = services.clients.create_client(
        {"companyId": "co1", "name": "Acme", "email": "a@acme.com"}, user_id="u1"
    )
    invoices = services.invoices.get_invoices_by_seller("co1", seller_id="u1")
"""

from dataclasses import dataclass

from invoice_core.offline.data_service import OfflineDataService
from invoice_core.services.base_service import BaseService, CompanyDocumentService
from invoice_core.services.client_service import ClientService
from invoice_core.services.document_services import (
    InvoiceService,
    ReceiptService,
    QuotationService,
)
from invoice_core.services.account_services import (
    UserService,
    CompanyService,
    AdminService,
)


@dataclass
class Services:
    """All entity services sharing one data service."""
    clients: ClientService
    invoices: InvoiceService
    receipts: ReceiptService
    quotations: QuotationService
    users: UserService
    companies: CompanyService
    admins: AdminService


def build_services(data_service: OfflineDataService) -> Services:
    return Services(
        clients=ClientService(data_service),
        invoices=InvoiceService(data_service),
        receipts=ReceiptService(data_service),
        quotations=QuotationService(data_service),
        users=UserService(data_service),
        companies=CompanyService(data_service),
        admins=AdminService(data_service),
    )


__all__ = [
    "BaseService",
    "CompanyDocumentService",
    "ClientService",
    "InvoiceService",
    "ReceiptService",
    "QuotationService",
    "UserService",
    "CompanyService",
    "AdminService",
    "Services",
    "build_services",
]
