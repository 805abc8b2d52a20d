import logging
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple

from billsync.data.sync_metadata_repository import SyncMetadataRepository
from billsync.data.sync_repository import DuplicateRecordError, SyncRepository
from billsync.data.tombstone_repository import TombstoneRepository
from billsync.models.base import SyncModel, utc_now
from billsync.models.remote_record import RemoteRecord
from billsync.remote.document_store import DocumentStore, RemoteUnavailableError, WriteOp
from billsync.services.collections import CollectionDescriptor, from_document, to_document
from billsync.services.conflict_resolver import remote_wins
from billsync.services.results import NOT_AUTHENTICATED_ERROR, OFFLINE_ERROR, SyncResult

logger = logging.getLogger("CollectionSyncer")

class CollectionSyncer:
    """
    Passe bidirecional de uma coleção (local <-> remoto) para o usuário atual.

    1. Carrega locais do usuário + não reclamados e os documentos remotos.
    2. Registros já sincronizados são pulados (o listener em tempo real cuida deles).
    3. Pendentes: casa com o remoto por cloud_id ou pelo id local embutido e aplica LWW.
    4. Remotos sem par local viram registros locais novos.
    5. Todas as escritas remotas (uploads + exclusões) vão num único batch atômico.
    6. Confirmações locais só depois do commit remoto, condicionadas ao last_modified lido.
    """
    def __init__(
        self,
        descriptor: CollectionDescriptor,
        repository: SyncRepository,
        remote: DocumentStore,
        auth,
        connectivity,
        device,
        metadata: SyncMetadataRepository,
        tombstones: TombstoneRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.descriptor = descriptor
        self.repository = repository
        self.remote = remote
        self.auth = auth
        self.connectivity = connectivity
        self.device = device
        self.metadata = metadata
        self.tombstones = tombstones
        self.clock = clock

    @property
    def name(self) -> str:
        return self.descriptor.name

    async def sync(self) -> SyncResult:
        user_id = self.auth.current_user_id()
        if not user_id:
            return SyncResult.failure(self.name, NOT_AUTHENTICATED_ERROR)
        if not self.connectivity.is_online:
            logger.info(f"[{self.name}] Offline, passe ignorado")
            return SyncResult.failure(self.name, OFFLINE_ERROR)

        logger.info(f"[{self.name}] Iniciando passe")
        try:
            result = await self._run_pass(user_id)
        except RemoteUnavailableError as e:
            logger.warning(f"[{self.name}] Servidor inalcançável: {e}")
            await self._record_error()
            return SyncResult.failure(self.name, OFFLINE_ERROR)
        except Exception as e:
            logger.error(f"[{self.name}] Sync Error: {e}")
            await self._record_error()
            return SyncResult.failure(self.name, str(e))

        logger.info(
            f"[{self.name}] Passe concluído: {result.uploaded} enviados, "
            f"{result.downloaded} baixados, {result.deleted} excluídos, {result.skipped} inalterados"
        )
        return result

    async def _run_pass(self, user_id: str) -> SyncResult:
        result = SyncResult(collection=self.name)

        tombstoned = await self.tombstones.pending_ids(self.name)
        locals_ = await self._load_locals(user_id)
        remotes = [r for r in await self._load_remotes(user_id) if r.cloud_id not in tombstoned]

        ops: List[WriteOp] = [WriteOp(collection=self.name, doc_id=cid, delete=True) for cid in tombstoned]
        acks: List[Tuple[SyncModel, str]] = []
        claimed: Set[str] = set()
        # Documentos que já têm dono local não servem para o casamento pelo id embutido
        owned = {l.cloud_id for l in locals_ if l.cloud_id}
        taken = owned | {r.cloud_id for r in remotes}

        for local in locals_:
            match = self._find_match(local, remotes, claimed, owned)
            if match:
                claimed.add(match.cloud_id)

            if local.is_synced:
                result.skipped += 1
                continue

            if match and remote_wins(local, match):
                try:
                    applied = await self.repository.apply_remote(
                        local.id, match, user_id=user_id, expected_last_modified=local.last_modified
                    )
                except DuplicateRecordError as e:
                    logger.warning(f"[{self.name}] Documento {match.cloud_id} ignorado: {e}")
                    result.skipped += 1
                    continue
                if applied:
                    result.downloaded += 1
                else:
                    logger.info(f"[{self.name}] Registro {local.id} alterado durante o passe; fica pendente")
                continue

            # Local vence (ou não existe remoto): upload
            doc_id = match.cloud_id if match else self._new_document_id(local, taken)
            extras = await self.repository.export_children(local)
            document = to_document(self.descriptor, local, extras, self.device.device_id)
            ops.append(WriteOp(collection=self.name, doc_id=doc_id, document=document, merge=match is not None))
            acks.append((local, doc_id))

        for remote in remotes:
            if remote.cloud_id in claimed: continue
            try:
                await self.repository.insert_from_remote(remote, user_id)
            except DuplicateRecordError as e:
                # Um documento em conflito não bloqueia o resto da coleção
                logger.warning(f"[{self.name}] Documento {remote.cloud_id} ignorado: {e}")
                result.skipped += 1
                continue
            result.downloaded += 1

        if ops:
            await self.remote.batch_write(user_id, ops)

        for local, doc_id in acks:
            confirmed = await self.repository.mark_synced(local.id, doc_id, user_id, local.last_modified)
            if confirmed:
                result.uploaded += 1
            else:
                logger.info(f"[{self.name}] Registro {local.id} alterado durante o upload; fica pendente")

        if tombstoned:
            await self.tombstones.clear(self.name, tombstoned)
            result.deleted = len(tombstoned)

        pending = await self.repository.count_pending()
        await self.metadata.record_pass(self.name, "synced", pending, self.clock())
        return result

    async def _load_locals(self, user_id: str) -> List[SyncModel]:
        if self.descriptor.is_singleton:
            first = await self.repository.first()
            return [first] if first else []
        return await self.repository.list_syncable(user_id)

    async def _load_remotes(self, user_id: str) -> List[RemoteRecord]:
        if self.descriptor.is_singleton:
            doc_id = self.descriptor.singleton_id
            document = await self.remote.get(user_id, self.name, doc_id)
            return [from_document(self.descriptor, doc_id, document)] if document else []

        snapshots = await self.remote.query(user_id, self.name)
        return [from_document(self.descriptor, s.doc_id, s.document) for s in snapshots]

    def _find_match(
        self, local: SyncModel, remotes: List[RemoteRecord], claimed: Set[str], owned: Set[str]
    ) -> Optional[RemoteRecord]:
        candidates = [r for r in remotes if r.cloud_id not in claimed]
        if self.descriptor.is_singleton:
            return candidates[0] if candidates else None

        if local.cloud_id:
            for remote in candidates:
                if remote.cloud_id == local.cloud_id:
                    return remote
            return None

        # Sem cloud_id: o upload anterior deste dispositivo pode ter chegado sem confirmação local.
        # O id embutido só vale para documentos escritos por este dispositivo (ids locais colidem entre dispositivos)
        for remote in candidates:
            if (
                remote.local_id == local.id
                and remote.cloud_id not in owned
                and remote.last_modified_by == self.device.device_id
            ):
                return remote
        return None

    def _new_document_id(self, local: SyncModel, taken: Set[str]) -> str:
        doc_id = self.descriptor.document_id(local)
        if self.descriptor.is_singleton or local.cloud_id or doc_id not in taken:
            return doc_id
        # Chave provisória já usada por outro dispositivo: qualifica com o id deste (continua determinística)
        return f"{doc_id}_{self.device.device_id}"

    async def _record_error(self):
        try:
            await self.metadata.set_status(self.name, "error")
        except Exception as e:
            logger.warning(f"[{self.name}] Não foi possível registrar o erro: {e}")
