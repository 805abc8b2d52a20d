import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from billsync.data.kv_store import KVStore
from billsync.data.sync_metadata_repository import SyncMetadataRepository
from billsync.data.sync_repository import SyncRepository
from billsync.services.collection_syncer import CollectionSyncer
from billsync.services.realtime_listener import RealtimeListenerManager
from billsync.services.results import (
    NOT_AUTHENTICATED_ERROR, OFFLINE_ERROR, SYNC_IN_PROGRESS_ERROR, SyncAllResult,
)

logger = logging.getLogger("SyncManager")

AUTO_SYNC_KEY = "auto_sync_enabled"

class SyncState(str, Enum):
    OFFLINE = "offline"
    SYNCING = "syncing"
    SYNCED = "synced"

class SyncManager:
    """
    Orquestrador: roda os syncers em sequência (empresa, produtos, clientes, faturas),
    garante um único sync_all por vez e reage a reconexão, login/logout e ao intervalo do auto-sync.
    """
    def __init__(
        self,
        syncers: List[CollectionSyncer],
        repositories: Dict[str, SyncRepository],
        metadata: SyncMetadataRepository,
        connectivity,
        auth,
        kv_store: KVStore,
        listener: RealtimeListenerManager,
        interval_seconds: float = 10,
    ):
        # A ordem importa: referenciados antes de quem referencia
        self.syncers = syncers
        self.repositories = repositories
        self.metadata = metadata
        self.connectivity = connectivity
        self.auth = auth
        self.kv_store = kv_store
        self.listener = listener
        self.interval_seconds = interval_seconds

        self._busy = False
        self._interval_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribers: List[Callable[[], None]] = []

    # --- SYNC COMPLETO ---

    @property
    def is_syncing(self) -> bool:
        return self._busy

    @property
    def status(self) -> SyncState:
        if not self.connectivity.is_online:
            return SyncState.OFFLINE
        if self._busy:
            return SyncState.SYNCING
        return SyncState.SYNCED

    async def sync_all(self) -> SyncAllResult:
        if self._busy:
            logger.info("Sync já em andamento, chamada ignorada")
            return SyncAllResult(success=False, error=SYNC_IN_PROGRESS_ERROR)
        if not self.connectivity.is_online:
            return SyncAllResult(success=False, error=OFFLINE_ERROR)
        if not self.auth.current_user_id():
            return SyncAllResult(success=False, error=NOT_AUTHENTICATED_ERROR)

        self._busy = True
        try:
            logger.info("Iniciando sync completo")
            results = {}
            for syncer in self.syncers:
                results[syncer.name] = await syncer.sync()

            failed = [f"{name}: {r.error}" for name, r in results.items() if not r.success]
            report = SyncAllResult(success=not failed, error="; ".join(failed) or None, results=results)
            if failed:
                logger.error(f"Sync completo com falhas: {report.error}")
            else:
                logger.info("Sync completo concluído")
            return report
        finally:
            self._busy = False

    # --- STATUS ---

    async def pending_changes(self) -> Dict[str, int]:
        counts = {name: await repo.count_pending() for name, repo in self.repositories.items()}
        counts["total"] = sum(counts.values())
        return counts

    async def last_sync_times(self) -> Dict[str, Optional[datetime]]:
        times = {name: None for name in self.repositories}
        for row in await self.metadata.all():
            times[row.collection_name] = row.last_sync_time
        return times

    async def last_sync_time(self) -> Optional[datetime]:
        times = [t for t in (await self.last_sync_times()).values() if t]
        return max(times) if times else None

    # --- AUTO-SYNC ---

    @property
    def auto_sync_enabled(self) -> bool:
        return self.kv_store.get_flag(AUTO_SYNC_KEY)

    async def enable_auto_sync(self) -> bool:
        self.kv_store.set_flag(AUTO_SYNC_KEY, True)
        user_id = self.auth.current_user_id()
        if not user_id:
            return False
        return await self.listener.enable(user_id)

    async def disable_auto_sync(self):
        self.kv_store.set_flag(AUTO_SYNC_KEY, False)
        await self.listener.disable()

    # --- CICLO DE VIDA ---

    async def start(self):
        self._unsubscribers = [
            self.connectivity.on_change(self._on_connectivity_change),
            self.auth.on_auth_state_change(self._on_auth_change),
        ]
        if self._interval_task is None:
            self._interval_task = asyncio.create_task(self._interval_loop())

        user_id = self.auth.current_user_id()
        if user_id and self.auto_sync_enabled:
            await self.listener.enable(user_id)

    async def stop(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        if self._interval_task:
            self._interval_task.cancel()
            await asyncio.gather(self._interval_task, return_exceptions=True)
            self._interval_task = None

        await self.drain()
        await self.listener.disable()

    async def drain(self):
        """Aguarda as tarefas disparadas por reconexão e login/logout"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _interval_loop(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self.auto_sync_enabled and self.connectivity.is_online and self.auth.current_user_id():
                await self.sync_all()

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_connectivity_change(self, online: bool):
        logger.info(f"Conectividade: {'online' if online else 'offline'}")
        if online and self.auto_sync_enabled and self.auth.current_user_id():
            self._spawn(self.sync_all())

    def _on_auth_change(self, user_id: Optional[str]):
        if user_id:
            if self.auto_sync_enabled:
                # enable() já dispara um sync completo
                self._spawn(self.listener.enable(user_id))
        else:
            # Logout: derruba os listeners, mas mantém a preferência de auto-sync
            self._spawn(self.listener.disable())
