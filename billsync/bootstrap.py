"""
Montagem dos componentes de sync a partir de Settings.
Cada dependência externa (remoto, identidade, conectividade) pode ser injetada, o que os testes usam.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from billsync.config import Settings
from billsync.data.company_repository import CompanyRepository
from billsync.data.customer_repository import CustomerRepository
from billsync.data.db_context import create_engine
from billsync.data.invoice_repository import InvoiceRepository
from billsync.data.kv_store import KVStore
from billsync.data.local_store import LocalStore
from billsync.data.product_repository import ProductRepository
from billsync.data.sync_metadata_repository import SyncMetadataRepository
from billsync.data.tombstone_repository import TombstoneRepository
from billsync.remote.document_store import DocumentStore
from billsync.services.auth_service import (
    AuthService, FirebaseIdentityProvider, IdentityProvider, LocalIdentityProvider,
)
from billsync.services.collection_syncer import CollectionSyncer
from billsync.services.collections import ALL_COLLECTIONS, COMPANY, CUSTOMERS, INVOICES, PRODUCTS
from billsync.services.connectivity import Connectivity
from billsync.services.device_identity import DeviceIdentity
from billsync.services.realtime_listener import RealtimeListenerManager
from billsync.services.records_service import RecordsService
from billsync.services.sync_manager import SyncManager
from billsync.services.sync_trigger import SyncTrigger

logger = logging.getLogger("BillSync")

FIRESTORE_PROBE_URL = "https://firestore.googleapis.com"

def build_remote(settings: Settings) -> DocumentStore:
    if settings.remote == "firestore":
        from billsync.remote.firestore_store import FirestoreDocumentStore
        return FirestoreDocumentStore()

    from billsync.remote.http_store import HttpDocumentStore
    return HttpDocumentStore(settings.api_url, settings.timeout_seconds, settings.poll_seconds)

def build_identity(settings: Settings, kv_store: KVStore) -> IdentityProvider:
    if settings.firebase_api_key:
        return FirebaseIdentityProvider(settings.firebase_api_key, settings.timeout_seconds)
    return LocalIdentityProvider(kv_store)

class BillSync:
    """Todos os componentes de sync de um processo, com start/stop explícitos."""
    def __init__(
        self,
        settings: Settings,
        remote: Optional[DocumentStore] = None,
        identity: Optional[IdentityProvider] = None,
        connectivity: Optional[Connectivity] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.store = LocalStore(create_engine(settings.db_path))
        self.kv_store = KVStore(settings.db_path)
        self.device = DeviceIdentity(self.kv_store)
        self.remote = remote or build_remote(settings)
        self.auth = AuthService(identity or build_identity(settings, self.kv_store), self.kv_store)

        probe_url = FIRESTORE_PROBE_URL if settings.remote == "firestore" else settings.api_url
        self.connectivity = connectivity or Connectivity(probe_url=probe_url, timeout=settings.timeout_seconds)

        self.metadata = SyncMetadataRepository(self.store)
        self.tombstones = TombstoneRepository(self.store)
        self.repositories = {
            COMPANY.name: CompanyRepository(self.store),
            PRODUCTS.name: ProductRepository(self.store),
            CUSTOMERS.name: CustomerRepository(self.store),
            INVOICES.name: InvoiceRepository(self.store),
        }

        self.syncers = {
            d.name: CollectionSyncer(
                d, self.repositories[d.name], self.remote, self.auth, self.connectivity,
                self.device, self.metadata, self.tombstones,
            )
            for d in ALL_COLLECTIONS
        }

        self.listener = RealtimeListenerManager(self.remote, self.repositories, self.tombstones, self.device)
        self.manager = SyncManager(
            [self.syncers[d.name] for d in ALL_COLLECTIONS],
            self.repositories,
            self.metadata,
            self.connectivity,
            self.auth,
            self.kv_store,
            self.listener,
            settings.sync_interval_seconds,
        )
        # Ligação em duas fases: o listener dispara o sync completo do orquestrador
        self.listener.bind_full_sync(self.manager.sync_all)

        self.trigger = SyncTrigger(
            self.syncers, self.auth, self.connectivity,
            settings.max_attempts, settings.base_delay_seconds, sleep,
        )
        self.records = RecordsService(
            self.repositories[COMPANY.name],
            self.repositories[CUSTOMERS.name],
            self.repositories[PRODUCTS.name],
            self.repositories[INVOICES.name],
            self.device,
            self.auth,
            self.trigger,
        )

    async def start(self):
        await self.store.init_schema()
        await self.manager.start()
        logger.info(f"BillSync iniciado (remoto: {self.settings.remote}, dispositivo: {self.device.device_id})")

    async def stop(self):
        await self.trigger.drain()
        await self.manager.stop()
        await self.remote.aclose()
        await self.connectivity.aclose()
        await self.store.close()
