import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from billsync.data.sync_repository import SyncRepository
from billsync.data.tombstone_repository import TombstoneRepository
from billsync.remote.document_store import ChangeEvent, ChangeType, DocumentStore, RemoteStoreError, Subscription
from billsync.services.collections import ALL_COLLECTIONS, BY_NAME, from_document

logger = logging.getLogger("RealtimeListener")

class RealtimeListenerManager:
    """
    Uma assinatura por coleção enquanto o auto-sync estiver ligado e houver usuário.
    Eventos de uma mesma coleção são aplicados na ordem de chegada (uma task por assinatura).
    """
    def __init__(
        self,
        remote: DocumentStore,
        repositories: Dict[str, SyncRepository],
        tombstones: TombstoneRepository,
        device=None,
        full_sync: Optional[Callable[[], Awaitable]] = None,
    ):
        self.remote = remote
        self.repositories = repositories
        self.tombstones = tombstones
        self.device = device
        self._full_sync = full_sync
        self._user_id: Optional[str] = None
        self._subscriptions: Dict[str, Subscription] = {}
        self._consumers: List[asyncio.Task] = []
        self._sync_task: Optional[asyncio.Task] = None

    def bind_full_sync(self, full_sync: Callable[[], Awaitable]):
        self._full_sync = full_sync

    @property
    def is_active(self) -> bool:
        return bool(self._subscriptions)

    async def enable(self, user_id: str) -> bool:
        """(Re)cria todas as assinaturas e dispara um sync completo"""
        await self.disable()
        self._user_id = user_id

        try:
            for descriptor in ALL_COLLECTIONS:
                subscription = await self.remote.subscribe(user_id, descriptor.name)
                self._subscriptions[descriptor.name] = subscription
                self._consumers.append(asyncio.create_task(self._consume(descriptor.name, subscription)))
        except RemoteStoreError as e:
            logger.error(f"Falha ao assinar mudanças remotas: {e}")
            await self.disable()
            return False

        logger.info(f"Listeners em tempo real ativos para {user_id}")
        if self._full_sync:
            self._sync_task = asyncio.create_task(self._full_sync())
        return True

    async def drain(self):
        """Aguarda o sync completo disparado pelo enable() (ele sempre roda até o fim)"""
        if self._sync_task:
            sync_task, self._sync_task = self._sync_task, None
            await asyncio.gather(sync_task, return_exceptions=True)

    async def disable(self):
        await self.drain()

        if not self._subscriptions and not self._consumers: return

        for subscription in self._subscriptions.values():
            subscription.close()
        self._subscriptions = {}

        consumers, self._consumers = self._consumers, []
        for task in consumers:
            task.cancel()
        await asyncio.gather(*consumers, return_exceptions=True)
        self._user_id = None
        logger.info("Listeners em tempo real desligados")

    async def _consume(self, collection: str, subscription: Subscription):
        async for event in subscription:
            try:
                await self.apply_event(collection, event)
            except Exception as e:
                # Um evento ruim não derruba o fluxo
                logger.error(f"[{collection}] Erro ao aplicar evento {event.type.value} {event.doc_id}: {e}")

    async def apply_event(self, collection: str, event: ChangeEvent):
        descriptor = BY_NAME[collection]
        repository = self.repositories[collection]

        if event.type == ChangeType.REMOVED:
            deleted = await repository.delete_by_cloud_id(event.doc_id, self._user_id)
            logger.debug(f"[{collection}] removed {event.doc_id} (local apagado: {deleted})")
            return

        # Exclusão local ainda não propagada: não ressuscita o registro
        if event.doc_id in await self.tombstones.pending_ids(collection): return

        remote = from_document(descriptor, event.doc_id, event.document or {})
        if descriptor.is_singleton:
            local = await repository.first()
        else:
            local = await repository.get_by_cloud_id(event.doc_id, self._user_id)
            if not local:
                local = await self._own_unconfirmed_upload(repository, remote)

        if local:
            await repository.apply_remote(local.id, remote, user_id=self._user_id)
        else:
            await repository.insert_from_remote(remote, self._user_id)
        logger.debug(f"[{collection}] {event.type.value} {event.doc_id} aplicado")

    async def _own_unconfirmed_upload(self, repository: SyncRepository, remote):
        """
        Eco do nosso próprio upload chegando antes da confirmação local (cloud_id ainda NULL).
        Só vale para documentos escritos por este dispositivo.
        """
        if self.device is None or remote.local_id is None: return None
        if remote.last_modified_by != self.device.device_id: return None
        candidate = await repository.get(remote.local_id)
        if candidate and not candidate.cloud_id and candidate.user_id in (None, self._user_id):
            return candidate
        return None
