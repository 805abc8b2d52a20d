from typing import List

from sqlalchemy import delete
from sqlmodel import select

from billsync.data.local_store import LocalStore
from billsync.models.sync_state import SyncTombstone

class TombstoneRepository:
    """Exclusões locais de registros que já existiam na nuvem, aguardando o próximo passe."""
    def __init__(self, store: LocalStore):
        self.store = store

    async def add(self, collection_name: str, cloud_id: str):
        async with self.store.session() as session:
            session.add(SyncTombstone(collection_name=collection_name, cloud_id=cloud_id))
            await session.commit()

    async def pending_ids(self, collection_name: str) -> List[str]:
        async with self.store.session() as session:
            result = await session.exec(
                select(SyncTombstone.cloud_id)
                .where(SyncTombstone.collection_name == collection_name)
                .order_by(SyncTombstone.id)
            )
            # Sem duplicatas, preservando a ordem
            return list(dict.fromkeys(result.all()))

    async def clear(self, collection_name: str, cloud_ids: List[str]):
        if not cloud_ids: return
        async with self.store.engine.begin() as conn:
            await conn.execute(
                delete(SyncTombstone).where(
                    SyncTombstone.collection_name == collection_name,
                    SyncTombstone.cloud_id.in_(cloud_ids),
                )
            )
