import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

from billsync.services.collection_syncer import CollectionSyncer
from billsync.services.results import NOT_AUTHENTICATED_ERROR, OFFLINE_ERROR, SyncResult

logger = logging.getLogger("SyncTrigger")

class SyncTrigger:
    """
    Sync oportunista após escrita local: roda só o syncer da coleção afetada, em segundo plano,
    com backoff exponencial (base, 2*base, 4*base...). Falha final só vai para o log.
    Não usa a trava do orquestrador.
    """
    def __init__(
        self,
        syncers: Dict[str, CollectionSyncer],
        auth,
        connectivity,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.syncers = syncers
        self.auth = auth
        self.connectivity = connectivity
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, collection: str) -> Optional[asyncio.Task]:
        if not self.auth.current_user_id():
            return None
        task = asyncio.create_task(self.run_with_retry(collection))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run_with_retry(self, collection: str) -> SyncResult:
        syncer = self.syncers[collection]
        result = SyncResult.failure(collection, OFFLINE_ERROR)

        for attempt in range(1, self.max_attempts + 1):
            if not self.connectivity.is_online:
                logger.info(f"[{collection}] Offline, sync adiado para o próximo passe")
                return SyncResult.failure(collection, OFFLINE_ERROR)

            result = await syncer.sync()
            if result.success or result.error == NOT_AUTHENTICATED_ERROR:
                return result
            # Servidor inalcançável com o sinal ainda online é falha transitória: entra no backoff
            if not self.connectivity.is_online:
                logger.info(f"[{collection}] Ficou offline, sync adiado para o próximo passe")
                return SyncResult.failure(collection, OFFLINE_ERROR)

            if attempt < self.max_attempts:
                delay = self.base_delay * 2 ** (attempt - 1)
                logger.warning(
                    f"[{collection}] Tentativa {attempt}/{self.max_attempts} falhou: {result.error}. "
                    f"Nova tentativa em {delay}s"
                )
                await self.sleep(delay)

        logger.error(f"[{collection}] Sync falhou após {self.max_attempts} tentativas: {result.error}")
        return result

    async def drain(self):
        """Aguarda os syncs em andamento (uso em testes e no encerramento)"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
