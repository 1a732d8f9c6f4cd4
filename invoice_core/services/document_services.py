# =============================================================================
# invoice_core/services/document_services.py
# Invoice, receipt and quotation operations
# =============================================================================
"""
Company documents created by sellers. All three share the same operations;
the ``*_by_seller`` variants restrict a company's documents to the ones a
given seller created (``createdBy``).
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional

from invoice_core.remote.base import Record, Subscription
from invoice_core.services.base_service import CompanyDocumentService


class InvoiceService(CompanyDocumentService):
    collection = "invoices"

    def get_invoices(self, company_id: str) -> List[Record]:
        return self.list_for_company(company_id)

    def get_invoices_by_seller(self, company_id: str, seller_id: str) -> List[Record]:
        return self.list_by_seller(company_id, seller_id)

    def get_invoice(self, invoice_id: str) -> Optional[Record]:
        return self.get_document(invoice_id)

    def create_invoice(self, data: Dict[str, Any], user_id: str) -> str:
        return self.create_document(data, user_id)

    def update_invoice(self, invoice_id: str, data: Dict[str, Any], user_id: str) -> None:
        self.update_document(invoice_id, data, user_id)

    def delete_invoice(self, invoice_id: str, user_id: str) -> None:
        self.delete_document(invoice_id, user_id)

    def subscribe_to_invoices(self, company_id: str, callback: Callable[[List[Record]], None]) -> Subscription:
        return self.subscribe_to_documents(company_id, callback)


class ReceiptService(CompanyDocumentService):
    collection = "receipts"

    def get_receipts(self, company_id: str) -> List[Record]:
        return self.list_for_company(company_id)

    def get_receipts_by_seller(self, company_id: str, seller_id: str) -> List[Record]:
        return self.list_by_seller(company_id, seller_id)

    def get_receipt(self, receipt_id: str) -> Optional[Record]:
        return self.get_document(receipt_id)

    def create_receipt(self, data: Dict[str, Any], user_id: str) -> str:
        return self.create_document(data, user_id)

    def update_receipt(self, receipt_id: str, data: Dict[str, Any], user_id: str) -> None:
        self.update_document(receipt_id, data, user_id)

    def delete_receipt(self, receipt_id: str, user_id: str) -> None:
        self.delete_document(receipt_id, user_id)

    def subscribe_to_receipts(self, company_id: str, callback: Callable[[List[Record]], None]) -> Subscription:
        return self.subscribe_to_documents(company_id, callback)


class QuotationService(CompanyDocumentService):
    collection = "quotations"

    def get_quotations(self, company_id: str) -> List[Record]:
        return self.list_for_company(company_id)

    def get_quotations_by_seller(self, company_id: str, seller_id: str) -> List[Record]:
        return self.list_by_seller(company_id, seller_id)

    def get_quotation(self, quotation_id: str) -> Optional[Record]:
        return self.get_document(quotation_id)

    def create_quotation(self, data: Dict[str, Any], user_id: str) -> str:
        return self.create_document(data, user_id)

    def update_quotation(self, quotation_id: str, data: Dict[str, Any], user_id: str) -> None:
        self.update_document(quotation_id, data, user_id)

    def delete_quotation(self, quotation_id: str, user_id: str) -> None:
        self.delete_document(quotation_id, user_id)

    def subscribe_to_quotations(self, company_id: str, callback: Callable[[List[Record]], None]) -> Subscription:
        return self.subscribe_to_documents(company_id, callback)
