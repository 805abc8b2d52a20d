"""Typed repositories: local writes, remote applies, compare-and-swap acknowledgements."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from billsync.models.base import SyncStatus
from billsync.models.customer import Customer
from billsync.models.invoice import Invoice, InvoiceItem
from billsync.models.product import Product
from billsync.models.remote_record import RemoteRecord
from billsync.services.conflict_resolver import as_utc

DEVICE = "device_test"


@pytest.fixture
def customers(app):
    return app.repositories["customers"]


@pytest.fixture
def products(app):
    return app.repositories["products"]


@pytest.fixture
def invoices(app):
    return app.repositories["invoices"]


class TestLocalWrites:
    async def test_save_marks_pending_with_provenance(self, customers):
        saved = await customers.save(Customer(name="Ana"), DEVICE)

        assert saved.id is not None
        assert saved.sync_status == SyncStatus.PENDING
        assert saved.last_modified_by == DEVICE
        assert saved.user_id is None
        assert saved.cloud_id is None

    async def test_update_keeps_envelope_and_flips_back_to_pending(self, customers):
        saved = await customers.save(Customer(name="Ana"), DEVICE, user_id="u1")
        assert await customers.mark_synced(saved.id, "cloud-1", "u1", saved.last_modified)

        edited = await customers.save(Customer(id=saved.id, name="Ana Maria"), "device_other", user_id="u2")

        assert edited.name == "Ana Maria"
        assert edited.cloud_id == "cloud-1"
        assert edited.user_id == "u1"
        assert edited.sync_status == SyncStatus.PENDING
        assert edited.last_modified_by == "device_other"

    async def test_count_pending_and_list_syncable(self, customers):
        await customers.save(Customer(name="Unclaimed"), DEVICE)
        await customers.save(Customer(name="Mine"), DEVICE, user_id="u1")
        await customers.save(Customer(name="Theirs"), DEVICE, user_id="u2")

        assert await customers.count_pending() == 3
        names = [c.name for c in await customers.list_syncable("u1")]
        assert names == ["Unclaimed", "Mine"]

    async def test_search(self, customers):
        await customers.save(Customer(name="Ana", phone="9999"), DEVICE)
        await customers.save(Customer(name="Bruno", phone="1234"), DEVICE)

        assert [c.name for c in await customers.search("an")] == ["Ana"]
        assert [c.name for c in await customers.search("123")] == ["Bruno"]
        assert len(await customers.search()) == 2

    async def test_delete_leaves_tombstone_only_for_uploaded_records(self, app, customers):
        local_only = await customers.save(Customer(name="Local"), DEVICE)
        uploaded = await customers.save(Customer(name="Uploaded"), DEVICE)
        await customers.mark_synced(uploaded.id, "cloud-9", "u1", uploaded.last_modified)

        assert await customers.delete(local_only.id, tombstone_collection="customers")
        assert await customers.delete(uploaded.id, tombstone_collection="customers")
        assert not await customers.delete(12345, tombstone_collection="customers")

        assert await app.tombstones.pending_ids("customers") == ["cloud-9"]
        assert await customers.list_all() == []


class TestRemoteWrites:
    async def test_mark_synced_is_compare_and_swap(self, customers):
        saved = await customers.save(Customer(name="Ana"), DEVICE)
        stale = saved.last_modified
        await customers.save(Customer(id=saved.id, name="Ana 2"), DEVICE)

        assert not await customers.mark_synced(saved.id, "local_1", "u1", stale)
        row = await customers.get(saved.id)
        assert row.sync_status == SyncStatus.PENDING
        assert row.cloud_id is None

    async def test_mark_synced_claims_only_unowned_records(self, customers):
        unowned = await customers.save(Customer(name="A"), DEVICE)
        owned = await customers.save(Customer(name="B"), DEVICE, user_id="u1")

        assert await customers.mark_synced(unowned.id, "c1", "u2", unowned.last_modified)
        assert await customers.mark_synced(owned.id, "c2", "u2", owned.last_modified)

        assert (await customers.get(unowned.id)).user_id == "u2"
        assert (await customers.get(owned.id)).user_id == "u1"

    async def test_apply_remote_updates_only_present_fields(self, customers):
        saved = await customers.save(Customer(name="Ana", phone="1", address="Rua 1"), DEVICE)
        remote_time = datetime.now(timezone.utc) + timedelta(minutes=5)
        remote = RemoteRecord(cloud_id="c1", fields={"phone": "2"}, last_modified=remote_time, last_modified_by="device_x")

        assert await customers.apply_remote(saved.id, remote, user_id="u1")

        row = await customers.get(saved.id)
        assert (row.name, row.phone, row.address) == ("Ana", "2", "Rua 1")
        assert row.cloud_id == "c1"
        assert row.sync_status == SyncStatus.SYNCED
        assert row.user_id == "u1"
        assert row.last_modified_by == "device_x"
        assert as_utc(row.last_modified) == remote_time

    async def test_apply_remote_respects_expected_timestamp(self, customers):
        saved = await customers.save(Customer(name="Ana"), DEVICE)
        remote = RemoteRecord(cloud_id="c1", fields={"name": "Remote"})

        applied = await customers.apply_remote(
            saved.id, remote, expected_last_modified=saved.last_modified - timedelta(seconds=1)
        )

        assert not applied
        assert (await customers.get(saved.id)).name == "Ana"

    async def test_insert_from_remote(self, customers):
        remote = RemoteRecord(cloud_id="c7", fields={"name": "Carla", "tax_id": "G1"}, last_modified_by="device_x")

        inserted = await customers.insert_from_remote(remote, "u1")

        assert inserted.cloud_id == "c7"
        assert inserted.tax_id == "G1"
        assert inserted.user_id == "u1"
        assert inserted.sync_status == SyncStatus.SYNCED
        assert await customers.get_by_cloud_id("c7") is not None

    async def test_delete_by_cloud_id(self, customers):
        await customers.insert_from_remote(RemoteRecord(cloud_id="c7", fields={"name": "Carla"}), "u1")

        assert await customers.delete_by_cloud_id("c7")
        assert not await customers.delete_by_cloud_id("c7")


class TestInvoiceItems:
    async def _invoice(self, invoices, customer_id, product_id, quantity=2.0):
        invoice = Invoice(invoice_number="INV-2026-001", customer_id=customer_id, date="2026-03-01", total=20)
        item = InvoiceItem(invoice_id=0, product_id=product_id, quantity=quantity, price=10, amount=10 * quantity)
        return await invoices.save_with_items(invoice, [item], DEVICE)

    async def test_items_are_replaced_wholesale(self, invoices):
        saved = await self._invoice(invoices, customer_id=1, product_id=1)
        replacement = [
            InvoiceItem(invoice_id=saved.id, product_id=2, quantity=1, price=5, amount=5),
            InvoiceItem(invoice_id=saved.id, product_id=3, quantity=3, price=1, amount=3),
        ]
        await invoices.save_with_items(Invoice(id=saved.id, invoice_number="INV-2026-001",
                                               customer_id=1, date="2026-03-01", total=8), replacement, DEVICE)

        items = await invoices.get_items(saved.id)
        assert [i.product_id for i in items] == [2, 3]

    async def test_export_carries_cloud_references(self, app, invoices):
        customer = await app.repositories["customers"].insert_from_remote(
            RemoteRecord(cloud_id="cust-1", fields={"name": "Ana"}), "u1")
        product = await app.repositories["products"].insert_from_remote(
            RemoteRecord(cloud_id="prod-1", fields={"name": "Caneta", "price": 10}), "u1")
        saved = await self._invoice(invoices, customer.id, product.id)

        extras = await invoices.export_children(saved)

        assert extras["customer_cloud_id"] == "cust-1"
        assert extras["items"] == [{
            "product_id": product.id, "product_cloud_id": "prod-1", "quantity": 2.0, "price": 10, "amount": 20.0,
        }]

    async def test_import_resolves_references_to_local_ids(self, app, invoices):
        customer = await app.repositories["customers"].insert_from_remote(
            RemoteRecord(cloud_id="cust-1", fields={"name": "Ana"}), "u1")
        product = await app.repositories["products"].insert_from_remote(
            RemoteRecord(cloud_id="prod-1", fields={"name": "Caneta"}), "u1")
        remote = RemoteRecord(
            cloud_id="inv-1",
            fields={"invoice_number": "INV-2026-050", "customer_id": 999, "date": "2026-03-02", "total": 30},
            extras={
                "customer_cloud_id": "cust-1",
                "items": [
                    {"product_id": 998, "product_cloud_id": "prod-1", "quantity": 3, "price": 10, "amount": 30},
                    {"product_id": 997, "product_cloud_id": "unknown", "quantity": 1, "price": 1, "amount": 1},
                ],
            },
        )

        inserted = await invoices.insert_from_remote(remote, "u1")

        assert inserted.customer_id == customer.id
        items = await invoices.get_items(inserted.id)
        assert [i.product_id for i in items] == [product.id, 997]

    async def test_unresolved_references_are_logged_and_keep_the_raw_ids(self, invoices, caplog):
        remote = RemoteRecord(
            cloud_id="inv-2",
            fields={"invoice_number": "INV-2026-051", "customer_id": 5, "date": "2026-03-02"},
            extras={
                "customer_cloud_id": "cust-missing",
                "items": [{"product_id": 6, "product_cloud_id": "prod-missing", "quantity": 1, "price": 1, "amount": 1}],
            },
        )

        with caplog.at_level(logging.WARNING, logger="InvoiceRepository"):
            inserted = await invoices.insert_from_remote(remote, "u1")

        assert inserted.customer_id == 5
        assert [i.product_id for i in await invoices.get_items(inserted.id)] == [6]
        assert "cust-missing" in caplog.text
        assert "prod-missing" in caplog.text

    async def test_references_resolve_only_within_the_account(self, app, invoices):
        await app.repositories["customers"].insert_from_remote(
            RemoteRecord(cloud_id="local_1", fields={"name": "Ana"}), "account-a")
        mine = await app.repositories["customers"].insert_from_remote(
            RemoteRecord(cloud_id="local_1", fields={"name": "Carlos"}), "account-b")
        remote = RemoteRecord(
            cloud_id="inv-3",
            fields={"invoice_number": "INV-2026-052", "customer_id": 1, "date": "2026-03-02"},
            extras={"customer_cloud_id": "local_1"},
        )

        inserted = await invoices.insert_from_remote(remote, "account-b")

        assert inserted.customer_id == mine.id

    async def test_delete_removes_items(self, invoices):
        saved = await self._invoice(invoices, customer_id=1, product_id=1)

        assert await invoices.delete(saved.id)
        assert await invoices.get_items(saved.id) == []


class TestSyncMetadata:
    async def test_record_pass_upserts_one_row_per_collection(self, app):
        first = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        await app.metadata.record_pass("customers", "synced", 2, first)
        await app.metadata.record_pass("customers", "synced", 0, first + timedelta(minutes=1))
        await app.metadata.set_status("customers", "error")

        rows = await app.metadata.all()
        assert len(rows) == 1
        row = rows[0]
        assert (row.collection_name, row.sync_status, row.pending_count) == ("customers", "error", 0)
        assert as_utc(row.last_sync_time) == first + timedelta(minutes=1)
