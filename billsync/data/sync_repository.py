from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from billsync.data.local_store import LocalStore
from billsync.models.base import SyncModel, SyncStatus, utc_now
from billsync.models.remote_record import RemoteRecord
from billsync.models.sync_state import SyncTombstone

T = TypeVar("T", bound=SyncModel)

class DuplicateRecordError(Exception):
    """Documento remoto viola uma restrição local (ex: número de fatura repetido)"""

class SyncRepository(Generic[T]):
    """
    Classe base para repositórios que precisam de sincronização.
    Escritas locais marcam o registro como pendente; escritas vindas da nuvem
    marcam como sincronizado. Os hooks de filhos/referências ficam nas subclasses.
    """
    def __init__(self, store: LocalStore, model_type: Type[T]):
        self.store = store
        self.model_type = model_type
        self.table_name = model_type.__tablename__

    # --- LEITURA ---

    async def list_all(self) -> List[T]:
        async with self.store.session() as session:
            result = await session.exec(select(self.model_type).order_by(self.model_type.id))
            return list(result.all())

    async def list_syncable(self, user_id: str) -> List[T]:
        """Registros do usuário atual e os ainda não reclamados (user_id NULL)"""
        model = self.model_type
        async with self.store.session() as session:
            statement = select(model).where(or_(model.user_id == user_id, model.user_id.is_(None)))
            result = await session.exec(statement.order_by(model.id))
            return list(result.all())

    async def get(self, entity_id: int) -> Optional[T]:
        async with self.store.session() as session:
            return await session.get(self.model_type, entity_id)

    def _by_cloud_id(self, cloud_id: str, user_id: Optional[str]):
        # cloud_id só identifica o documento dentro da conta
        statement = select(self.model_type).where(self.model_type.cloud_id == cloud_id)
        if user_id:
            statement = statement.where(self.model_type.user_id == user_id)
        return statement

    async def get_by_cloud_id(self, cloud_id: str, user_id: Optional[str] = None) -> Optional[T]:
        if not cloud_id: return None
        async with self.store.session() as session:
            result = await session.exec(self._by_cloud_id(cloud_id, user_id))
            return result.first()

    async def first(self) -> Optional[T]:
        async with self.store.session() as session:
            result = await session.exec(select(self.model_type).order_by(self.model_type.id))
            return result.first()

    async def count_pending(self) -> int:
        async with self.store.session() as session:
            statement = select(func.count()).select_from(self.model_type).where(
                self.model_type.sync_status == SyncStatus.PENDING.value
            )
            result = await session.exec(statement)
            return result.one()

    # --- MÉTODOS CRUD (escrita local) ---

    async def save(self, entity: T, device_id: str, user_id: Optional[str] = None) -> T:
        """
        Cria ou atualiza a partir dos campos de domínio.
        O envelope (cloud_id, user_id já reclamado) do registro existente é preservado.
        """
        async with self.store.session() as session:
            target = await self._stage_local_write(session, entity, device_id, user_id)
            await session.commit()
            await session.refresh(target)
            return target

    async def delete(self, entity_id: int, tombstone_collection: Optional[str] = None) -> bool:
        """
        Exclusão física. Se o registro já existe na nuvem, deixa uma lápide para o próximo passe.
        """
        async with self.store.session() as session:
            entity = await session.get(self.model_type, entity_id)
            if not entity:
                return False

            if tombstone_collection and entity.cloud_id:
                session.add(SyncTombstone(collection_name=tombstone_collection, cloud_id=entity.cloud_id))

            await self.delete_children(session, entity.id)
            await session.delete(entity)
            await session.commit()
            return True

    async def _stage_local_write(
        self, session: AsyncSession, entity: T, device_id: str, user_id: Optional[str]
    ) -> T:
        target = await session.get(self.model_type, entity.id) if entity.id else None
        if target:
            for name in self.model_type.DOMAIN_FIELDS:
                setattr(target, name, getattr(entity, name))
        else:
            target = entity

        target.sync_status = SyncStatus.PENDING
        target.last_modified = utc_now()
        target.last_modified_by = device_id
        if user_id and not target.user_id:
            target.user_id = user_id

        session.add(target)
        await session.flush()
        return target

    # --- ESCRITAS VINDAS DA NUVEM ---

    async def insert_from_remote(self, remote: RemoteRecord, user_id: Optional[str]) -> T:
        """
        Novo registro local a partir do documento.
        Se o cloud_id já chegou por outro caminho (listener x passe), vira uma atualização.
        Outra violação de restrição vira DuplicateRecordError.
        """
        try:
            return await self._insert_remote(remote, user_id)
        except IntegrityError as e:
            existing = await self.get_by_cloud_id(remote.cloud_id, user_id)
            if not existing:
                raise DuplicateRecordError(f"{self.table_name}/{remote.cloud_id}: {e.orig}") from e
            await self.apply_remote(existing.id, remote, user_id=user_id)
            return await self.get(existing.id)

    async def _insert_remote(self, remote: RemoteRecord, user_id: Optional[str]) -> T:
        async with self.store.session() as session:
            values = await self.resolve_references(session, remote.fields, remote.extras, user_id)
            entity = self.model_type(
                **values,
                cloud_id=remote.cloud_id,
                user_id=user_id,
                sync_status=SyncStatus.SYNCED,
                last_modified=remote.last_modified or utc_now(),
                last_modified_by=remote.last_modified_by,
            )
            session.add(entity)
            await session.flush()
            await self.import_children(session, entity.id, remote.extras, user_id)
            await session.commit()
            await session.refresh(entity)
            return entity

    async def apply_remote(
        self,
        local_id: int,
        remote: RemoteRecord,
        user_id: Optional[str] = None,
        expected_last_modified: Optional[datetime] = None,
    ) -> bool:
        """
        Sobrescreve o registro local com os campos presentes no documento e marca como sincronizado.
        Com expected_last_modified a escrita é condicional (compare-and-swap): se o registro
        mudou desde a leitura, nada é aplicado e o retorno é False.
        """
        model = self.model_type
        async with self.store.session() as session:
            values = await self.resolve_references(session, remote.fields, remote.extras, user_id)
            values.update(
                cloud_id=remote.cloud_id,
                sync_status=SyncStatus.SYNCED.value,
                last_modified=remote.last_modified or utc_now(),
                last_modified_by=remote.last_modified_by,
            )
            if user_id:
                values["user_id"] = func.coalesce(model.user_id, user_id)

            statement = update(model).where(model.id == local_id)
            if expected_last_modified is not None:
                statement = statement.where(model.last_modified == expected_last_modified)

            connection = await session.connection()
            try:
                result = await connection.execute(statement.values(**values))
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateRecordError(f"{self.table_name}/{remote.cloud_id}: {e.orig}") from e
            if result.rowcount != 1:
                await session.rollback()
                return False

            await self.import_children(session, local_id, remote.extras, user_id)
            await session.commit()
            return True

    async def mark_synced(
        self,
        local_id: int,
        cloud_id: str,
        user_id: Optional[str],
        expected_last_modified: Optional[datetime] = None,
    ) -> bool:
        """Confirma o upload. Condicional ao last_modified lido no início do passe."""
        model = self.model_type
        values: Dict[str, Any] = {"cloud_id": cloud_id, "sync_status": SyncStatus.SYNCED.value}
        if user_id:
            values["user_id"] = func.coalesce(model.user_id, user_id)

        statement = update(model).where(model.id == local_id)
        if expected_last_modified is not None:
            statement = statement.where(model.last_modified == expected_last_modified)

        async with self.store.engine.begin() as conn:
            result = await conn.execute(statement.values(**values))
            return result.rowcount == 1

    async def delete_by_cloud_id(self, cloud_id: str, user_id: Optional[str] = None) -> bool:
        async with self.store.session() as session:
            result = await session.exec(self._by_cloud_id(cloud_id, user_id))
            entity = result.first()
            if not entity:
                return False
            await self.delete_children(session, entity.id)
            await session.delete(entity)
            await session.commit()
            return True

    # --- HOOKS (sobrescritos por tipos com filhos ou referências) ---

    async def export_children(self, entity: T) -> Dict[str, Any]:
        """Dados extras enviados junto do documento (fora das colunas de domínio)"""
        return {}

    async def resolve_references(
        self, session: AsyncSession, fields: Dict[str, Any], extras: Dict[str, Any], user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return dict(fields)

    async def import_children(
        self, session: AsyncSession, local_id: int, extras: Dict[str, Any], user_id: Optional[str] = None
    ):
        pass

    async def delete_children(self, session: AsyncSession, local_id: int):
        pass
