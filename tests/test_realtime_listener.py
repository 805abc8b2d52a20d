"""Real-time change application and the listener lifecycle."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from billsync.models.base import SyncStatus
from billsync.models.customer import Customer
from billsync.models.invoice import Invoice, InvoiceItem
from billsync.models.remote_record import RemoteRecord
from billsync.remote.document_store import ChangeEvent, ChangeType
from billsync.services.conflict_resolver import as_utc
from tests.fakes import eventually, remote_doc

DEVICE = "device_test"


@pytest.fixture
def customers(app):
    return app.repositories["customers"]


class TestApplyEvent:
    async def test_removed_deletes_the_local_row(self, app, customers):
        await customers.insert_from_remote(RemoteRecord(cloud_id="c1", fields={"name": "Ana"}), "u1")

        await app.listener.apply_event("customers", ChangeEvent(type=ChangeType.REMOVED, doc_id="c1"))

        assert await customers.get_by_cloud_id("c1") is None

    async def test_modified_updates_present_fields_and_timestamp(self, app, customers):
        row = await customers.insert_from_remote(
            RemoteRecord(cloud_id="c1", fields={"name": "Ana", "phone": "1", "address": "Rua 1"}), "u1")
        stamp = datetime.now(timezone.utc) + timedelta(minutes=1)
        event = ChangeEvent(
            type=ChangeType.MODIFIED, doc_id="c1",
            document={"id": 9, "data": {"phone": "2"}, "lastModified": stamp, "lastModifiedBy": "device_x"},
        )

        await app.listener.apply_event("customers", event)

        updated = await customers.get(row.id)
        assert (updated.name, updated.phone, updated.address) == ("Ana", "2", "Rua 1")
        assert as_utc(updated.last_modified) == stamp
        assert updated.sync_status == SyncStatus.SYNCED

    async def test_added_inserts_a_synced_row(self, app, customers):
        event = ChangeEvent(type=ChangeType.ADDED, doc_id="c2",
                            document=remote_doc({"name": "Bruno", "gstin": "G"}, "2026-01-01T00:00:00Z"))

        await app.listener.apply_event("customers", event)

        row = await customers.get_by_cloud_id("c2")
        assert row.name == "Bruno"
        assert row.tax_id == "G"
        assert row.sync_status == SyncStatus.SYNCED

    async def test_modified_for_unknown_document_inserts(self, app, customers):
        event = ChangeEvent(type=ChangeType.MODIFIED, doc_id="c3", document=remote_doc({"name": "Carla"}, None))

        await app.listener.apply_event("customers", event)

        assert (await customers.get_by_cloud_id("c3")).name == "Carla"

    async def test_locally_deleted_document_is_not_resurrected(self, app, customers):
        row = await customers.insert_from_remote(RemoteRecord(cloud_id="c1", fields={"name": "Ana"}), "u1")
        await customers.delete(row.id, tombstone_collection="customers")

        event = ChangeEvent(type=ChangeType.MODIFIED, doc_id="c1", document=remote_doc({"name": "Ana"}, None))
        await app.listener.apply_event("customers", event)

        assert await customers.list_all() == []

    async def test_echo_of_own_unacknowledged_upload_is_applied_in_place(self, app, customers):
        saved = await customers.save(Customer(name="Ana"), DEVICE)
        document = remote_doc({"name": "Ana"}, None, local_id=saved.id, device=app.device.device_id)

        await app.listener.apply_event(
            "customers", ChangeEvent(type=ChangeType.ADDED, doc_id=f"local_{saved.id}", document=document))

        rows = await customers.list_all()
        assert len(rows) == 1
        assert rows[0].cloud_id == f"local_{saved.id}"

    async def test_invoice_event_replaces_items(self, app):
        invoices = app.repositories["invoices"]
        invoice = await invoices.insert_from_remote(RemoteRecord(
            cloud_id="inv-1",
            fields={"invoice_number": "INV-2026-001", "customer_id": 1, "date": "2026-03-01"},
            extras={"items": [{"product_id": 1, "quantity": 1, "price": 1, "amount": 1}]},
        ), "u1")
        document = remote_doc({"total": 9, "items": [
            {"product_id": 5, "quantity": 3, "price": 3, "amount": 9},
        ]}, None)

        await app.listener.apply_event("invoices", ChangeEvent(type=ChangeType.MODIFIED, doc_id="inv-1", document=document))

        items = await invoices.get_items(invoice.id)
        assert [(i.product_id, i.amount) for i in items] == [(5, 9)]
        assert (await invoices.get(invoice.id)).total == 9


class TestLifecycle:
    async def test_enable_subscribes_every_collection(self, app, remote, user_id):
        assert await app.listener.enable(user_id)
        await app.listener.drain()

        assert remote.calls["subscribe"] == 4
        assert app.listener.is_active

    async def test_remote_changes_flow_into_the_local_store(self, app, remote, customers, user_id):
        await app.listener.enable(user_id)
        await app.listener.drain()

        async def name_is(expected):
            row = await customers.get_by_cloud_id("c1")
            return (row.name if row else None) == expected

        remote.put(user_id, "customers", "c1", remote_doc({"name": "Ana"}, None))
        await eventually(lambda: name_is("Ana"))

        remote.put(user_id, "customers", "c1", remote_doc({"name": "Ana Maria"}, None))
        await eventually(lambda: name_is("Ana Maria"))

        remote.remove(user_id, "customers", "c1")
        await eventually(lambda: name_is(None))

    async def test_events_only_touch_rows_of_the_listening_account(self, app, remote, customers):
        await customers.insert_from_remote(RemoteRecord(cloud_id="local_1", fields={"name": "Ana"}), "account-a")
        await app.listener.enable("account-b")
        await app.listener.drain()

        async def account_b_name_is(expected):
            row = await customers.get_by_cloud_id("local_1", "account-b")
            return (row.name if row else None) == expected

        remote.put("account-b", "customers", "local_1", remote_doc({"name": "Carlos"}, None))
        await eventually(lambda: account_b_name_is("Carlos"))

        remote.remove("account-b", "customers", "local_1")
        await eventually(lambda: account_b_name_is(None))

        untouched = await customers.get_by_cloud_id("local_1", "account-a")
        assert (untouched.name, untouched.user_id) == ("Ana", "account-a")

    async def test_bad_event_does_not_stop_the_stream(self, app, remote, customers, user_id):
        await app.listener.enable(user_id)
        await app.listener.drain()

        # Missing required column: insert fails, the next event still applies
        remote.put(user_id, "invoices", "broken", remote_doc({"notes": "no number"}, None))
        remote.put(user_id, "customers", "c1", remote_doc({"name": "Ana"}, None))
        remote.put(user_id, "invoices", "ok", remote_doc(
            {"invoice_number": "INV-2026-009", "customer_id": 1, "date": "2026-03-01"}, None))
        async def both_applied():
            customer = await customers.get_by_cloud_id("c1")
            invoice = await app.repositories["invoices"].get_by_cloud_id("ok")
            return customer is not None and invoice is not None

        await eventually(both_applied)
        assert await app.repositories["invoices"].get_by_cloud_id("broken") is None

    async def test_disable_is_idempotent_and_stops_updates(self, app, remote, customers, user_id):
        await app.listener.enable(user_id)
        await app.listener.disable()
        await app.listener.disable()

        assert not app.listener.is_active
        remote.put(user_id, "customers", "c1", remote_doc({"name": "Ana"}, None))
        await asyncio.sleep(0.05)
        assert await customers.get_by_cloud_id("c1") is None

    async def test_enable_replaces_previous_subscriptions(self, app, remote, user_id):
        await app.listener.enable(user_id)
        await app.listener.enable(user_id)
        await app.listener.drain()

        assert remote.calls["subscribe"] == 8
        assert app.listener.is_active

    async def test_failed_subscription_leaves_listener_inactive(self, app, remote, user_id):
        remote.fail_next("subscribe")

        assert not await app.listener.enable(user_id)
        assert not app.listener.is_active
