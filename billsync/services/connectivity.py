import asyncio
import logging
from typing import Callable, List, Optional

import httpx

logger = logging.getLogger("Connectivity")

class Connectivity:
    """
    Sinal online/offline alimentado de fora (probe periódico ou a própria UI).
    Leitura síncrona: pode mudar no meio de um passe.
    """
    def __init__(
        self,
        online: bool = True,
        probe_url: Optional[str] = None,
        timeout: float = 5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._online = online
        self.probe_url = probe_url
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._callbacks: List[Callable[[bool], None]] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool):
        if online == self._online: return
        self._online = online
        for callback in list(self._callbacks):
            try:
                callback(online)
            except Exception as e:
                logger.error(f"Erro no callback de conectividade: {e}")

    def on_change(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        self._callbacks.append(callback)
        return lambda: self._callbacks.remove(callback) if callback in self._callbacks else None

    async def probe(self) -> bool:
        """Qualquer resposta HTTP conta como online; erro de transporte = offline"""
        if not self.probe_url:
            return self._online
        try:
            await self.client.get(self.probe_url)
            online = True
        except httpx.HTTPError:
            online = False
        self.set_online(online)
        return online

    async def watch(self, interval: float = 5):
        while True:
            await self.probe()
            await asyncio.sleep(interval)

    async def aclose(self):
        await self.client.aclose()
