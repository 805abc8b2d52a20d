from datetime import datetime
from typing import List, Optional

from sqlmodel import select

from billsync.data.local_store import LocalStore
from billsync.models.base import utc_now
from billsync.models.sync_state import SyncMetadata

class SyncMetadataRepository:
    """Uma linha por coleção: último passe concluído, status e pendências."""
    def __init__(self, store: LocalStore):
        self.store = store

    async def get(self, collection_name: str) -> Optional[SyncMetadata]:
        async with self.store.session() as session:
            result = await session.exec(
                select(SyncMetadata).where(SyncMetadata.collection_name == collection_name)
            )
            return result.first()

    async def all(self) -> List[SyncMetadata]:
        async with self.store.session() as session:
            result = await session.exec(select(SyncMetadata).order_by(SyncMetadata.collection_name))
            return list(result.all())

    async def record_pass(
        self,
        collection_name: str,
        status: str,
        pending_count: int = 0,
        when: Optional[datetime] = None,
    ) -> SyncMetadata:
        return await self._upsert(
            collection_name, sync_status=status, pending_count=pending_count, last_sync_time=when or utc_now()
        )

    async def set_status(self, collection_name: str, status: str) -> SyncMetadata:
        """Atualiza só o status (ex: erro), sem mexer no horário do último passe"""
        return await self._upsert(collection_name, sync_status=status)

    async def _upsert(self, collection_name: str, **values) -> SyncMetadata:
        async with self.store.session() as session:
            result = await session.exec(
                select(SyncMetadata).where(SyncMetadata.collection_name == collection_name)
            )
            row = result.first() or SyncMetadata(collection_name=collection_name)
            for key, value in values.items():
                setattr(row, key, value)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row
