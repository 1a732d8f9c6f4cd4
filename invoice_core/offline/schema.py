# =============================================================================
# invoice_core/offline/schema.py
# Collection declarations and boundary validation
# =============================================================================
"""
Declared collections of the local record store.

Every collection is keyed by ``id``. Index fields are mirrored into indexed
columns so tenant-scoped lookups (``companyId``) avoid a full scan. Bump
``SCHEMA_VERSION`` whenever a collection or index is added; the upgrade is
additive only.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from invoice_core.errors import RecordValidationError

SCHEMA_VERSION = 2

TENANT_FIELD = "companyId"

SYNC_QUEUE = "sync_queue"
ID_ALIASES = "id_aliases"


@dataclass(frozen=True)
class CollectionSpec:
    """Shape of one collection: indexes and fields required on create."""
    name: str
    indexes: Tuple[str, ...] = ()
    required_fields: Tuple[str, ...] = ()
    internal: bool = False

    @property
    def tenant_scoped(self) -> bool:
        return TENANT_FIELD in self.indexes


COLLECTIONS: Dict[str, CollectionSpec] = {
    spec.name: spec
    for spec in (
        CollectionSpec("users", indexes=("companyId", "email"), required_fields=("email",)),
        CollectionSpec("companies", required_fields=("name",)),
        CollectionSpec("admins", indexes=("email",), required_fields=("email",)),
        CollectionSpec("clients", indexes=("companyId",), required_fields=("companyId", "name")),
        CollectionSpec("invoices", indexes=("companyId", "clientId"), required_fields=("companyId", "clientId")),
        CollectionSpec("receipts", indexes=("companyId", "invoiceId"), required_fields=("companyId",)),
        CollectionSpec("quotations", indexes=("companyId",), required_fields=("companyId", "clientId")),
        # Internal bookkeeping, never exposed through the data service
        CollectionSpec(SYNC_QUEUE, indexes=("timestamp",), internal=True),
        CollectionSpec(ID_ALIASES, indexes=("collection",), internal=True),
    )
}


def get_collection(name: str) -> CollectionSpec:
    """Look up a public collection, raising for unknown or internal names."""
    spec = COLLECTIONS.get(name)
    if spec is None or spec.internal:
        raise RecordValidationError(f"Unknown collection: {name!r}", collection=str(name))
    return spec


def validate_id(collection: str, record_id: Any) -> str:
    if not isinstance(record_id, str) or not record_id.strip():
        raise RecordValidationError(
            "Record id must be a non-empty string",
            collection=collection,
            field="id",
        )
    return record_id


def validate_payload(collection: str, data: Any, creating: bool = False) -> Dict[str, Any]:
    """
    Validate a field map passed to the data service.

    Args:
        collection: Collection name
        data: Field map to validate
        creating: Whether required fields must be present

    Returns:
        A shallow copy of the field map
    """
    spec = get_collection(collection)
    if not isinstance(data, Mapping):
        raise RecordValidationError(
            f"Expected a field map, got {type(data).__name__}",
            collection=collection,
        )

    if creating:
        for field_name in spec.required_fields:
            value = data.get(field_name)
            if value is None or value == "":
                raise RecordValidationError(
                    f"Missing required field {field_name!r}",
                    collection=collection,
                    field=field_name,
                )

    return dict(data)
