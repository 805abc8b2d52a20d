"""
Descritores das coleções sincronizadas e a conversão registro local <-> documento remoto.

Formato do documento: {"id": <id local>, "data": {...}, "lastModified": ..., "lastModifiedBy": <device>}
"""
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field

from billsync.models.base import SyncModel
from billsync.models.company import Company
from billsync.models.customer import Customer
from billsync.models.invoice import Invoice
from billsync.models.product import Product
from billsync.models.remote_record import RemoteRecord
from billsync.remote.document_store import SERVER_TIMESTAMP
from billsync.services.conflict_resolver import as_utc

PLACEHOLDER_PREFIX = "local_"

def placeholder_id(local_id: int) -> str:
    """Chave remota provisória: reenvios do mesmo registro caem sempre no mesmo documento"""
    return f"{PLACEHOLDER_PREFIX}{local_id}"

class CollectionDescriptor(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    model: Type[SyncModel]
    field_map: Dict[str, str] = Field(default_factory=dict)  # coluna local -> nome no documento
    singleton_id: Optional[str] = None

    @property
    def fields(self) -> Tuple[str, ...]:
        return self.model.DOMAIN_FIELDS

    @property
    def is_singleton(self) -> bool:
        return self.singleton_id is not None

    def wire_name(self, field: str) -> str:
        return self.field_map.get(field, field)

    def local_name(self, wire: str) -> str:
        for local, remote in self.field_map.items():
            if remote == wire:
                return local
        return wire

    def document_id(self, entity: SyncModel) -> str:
        if self.singleton_id:
            return self.singleton_id
        return entity.cloud_id or placeholder_id(entity.id)

COMPANY = CollectionDescriptor(name="company", model=Company, field_map={"tax_id": "gstin"}, singleton_id="settings")
PRODUCTS = CollectionDescriptor(name="products", model=Product)
CUSTOMERS = CollectionDescriptor(name="customers", model=Customer, field_map={"tax_id": "gstin"})
INVOICES = CollectionDescriptor(name="invoices", model=Invoice)

# Ordem de sincronização: referenciados antes de quem referencia
ALL_COLLECTIONS = (COMPANY, PRODUCTS, CUSTOMERS, INVOICES)
BY_NAME = {d.name: d for d in ALL_COLLECTIONS}

def to_document(
    descriptor: CollectionDescriptor, entity: SyncModel, extras: Dict[str, Any], device_id: str
) -> Dict[str, Any]:
    data = {descriptor.wire_name(f): getattr(entity, f) for f in descriptor.fields}
    data.update(extras)
    return {
        "id": entity.id,
        "data": data,
        "lastModified": SERVER_TIMESTAMP,
        "lastModifiedBy": device_id,
    }

def _parse_local_id(raw: Any) -> Optional[int]:
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None

def from_document(descriptor: CollectionDescriptor, doc_id: str, document: Dict[str, Any]) -> RemoteRecord:
    fields: Dict[str, Any] = {}
    extras: Dict[str, Any] = {}
    for key, value in (document.get("data") or {}).items():
        local = descriptor.local_name(key)
        if local in descriptor.fields:
            fields[local] = value
        else:
            extras[key] = value

    raw_timestamp = document.get("lastModified")
    try:
        last_modified = as_utc(raw_timestamp) if raw_timestamp else None
    except (TypeError, ValueError):
        last_modified = None

    return RemoteRecord(
        cloud_id=doc_id,
        local_id=_parse_local_id(document.get("id")),
        fields=fields,
        extras=extras,
        last_modified=last_modified,
        last_modified_by=document.get("lastModifiedBy"),
    )
