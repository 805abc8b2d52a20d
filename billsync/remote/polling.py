import asyncio
import logging
from typing import Any, Dict

from billsync.remote.document_store import ChangeEvent, ChangeType, RemoteStoreError, Subscription

logger = logging.getLogger("PollingSubscription")

class PollingSubscription(Subscription):
    """
    Assinatura para repositórios sem push: consulta a coleção a cada intervalo e
    emite a diferença entre snapshots. O primeiro snapshot chega inteiro como "added".
    """
    def __init__(self, store, user_id: str, collection: str, interval: float = 5):
        super().__init__()
        self.store = store
        self.user_id = user_id
        self.collection = collection
        self.interval = interval
        self._snapshot: Dict[str, Dict[str, Any]] = {}
        self._task = None

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            self.on_close(self._task.cancel)

    async def _run(self):
        while not self.closed:
            try:
                await self.poll_once()
            except RemoteStoreError as e:
                # Servidor fora do ar: tenta de novo no próximo ciclo
                logger.warning(f"[{self.collection}] Falha no polling: {e}")
            await asyncio.sleep(self.interval)

    async def poll_once(self):
        snapshots = await self.store.query(self.user_id, self.collection)
        current = {s.doc_id: s.document for s in snapshots}

        for doc_id, document in current.items():
            previous = self._snapshot.get(doc_id)
            if previous is None:
                self.push(ChangeEvent(type=ChangeType.ADDED, doc_id=doc_id, document=document))
            elif previous != document:
                self.push(ChangeEvent(type=ChangeType.MODIFIED, doc_id=doc_id, document=document))

        for doc_id in self._snapshot.keys() - current.keys():
            self.push(ChangeEvent(type=ChangeType.REMOVED, doc_id=doc_id))

        self._snapshot = current
