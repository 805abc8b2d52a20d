"""Collection descriptors and the local <-> wire document mapping."""
from __future__ import annotations

from datetime import datetime, timezone

from billsync.models.company import Company
from billsync.models.customer import Customer
from billsync.models.invoice import Invoice
from billsync.remote.document_store import SERVER_TIMESTAMP
from billsync.services.collections import (
    ALL_COLLECTIONS, BY_NAME, COMPANY, CUSTOMERS, INVOICES, PRODUCTS, from_document, placeholder_id,
    to_document,
)


def test_orchestration_order():
    assert [d.name for d in ALL_COLLECTIONS] == ["company", "products", "customers", "invoices"]
    assert BY_NAME["invoices"] is INVOICES


def test_placeholder_and_document_ids():
    assert placeholder_id(7) == "local_7"
    assert CUSTOMERS.document_id(Customer(id=7, name="Ana")) == "local_7"
    assert CUSTOMERS.document_id(Customer(id=7, name="Ana", cloud_id="abc")) == "abc"
    assert COMPANY.document_id(Company(id=3, name="ACME", cloud_id="whatever")) == "settings"


def test_to_document_maps_tax_id_and_stamps_server_time():
    customer = Customer(id=4, name="Ana", phone="555", address="Rua 1", tax_id="29ABCDE1234F1Z5")
    document = to_document(CUSTOMERS, customer, {}, "device_1")

    assert document["id"] == 4
    assert document["data"] == {"name": "Ana", "phone": "555", "address": "Rua 1", "gstin": "29ABCDE1234F1Z5"}
    assert document["lastModified"] is SERVER_TIMESTAMP
    assert document["lastModifiedBy"] == "device_1"


def test_to_document_embeds_extras():
    invoice = Invoice(id=1, invoice_number="INV-2026-001", customer_id=2, date="2026-03-01", total=10)
    extras = {"customer_cloud_id": "c1", "items": [{"product_id": 1, "quantity": 1, "price": 10, "amount": 10}]}
    document = to_document(INVOICES, invoice, extras, "device_1")

    assert document["data"]["invoice_number"] == "INV-2026-001"
    assert document["data"]["customer_cloud_id"] == "c1"
    assert document["data"]["items"][0]["amount"] == 10


def test_from_document_splits_fields_and_extras():
    document = {
        "id": "12",
        "data": {"name": "Ana", "gstin": "X1", "customer_cloud_id": "c9"},
        "lastModified": "2026-03-01T12:00:00Z",
        "lastModifiedBy": "device_9",
    }
    record = from_document(CUSTOMERS, "doc-1", document)

    assert record.cloud_id == "doc-1"
    assert record.local_id == 12
    assert record.fields == {"name": "Ana", "tax_id": "X1"}
    assert record.extras == {"customer_cloud_id": "c9"}
    assert record.last_modified == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert record.last_modified_by == "device_9"


def test_from_document_tolerates_missing_pieces():
    record = from_document(PRODUCTS, "p1", {"data": {"price": 5}, "id": "not-a-number", "lastModified": "garbage"})

    assert record.local_id is None
    assert record.fields == {"price": 5}
    assert record.last_modified is None
