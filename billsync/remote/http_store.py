import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from billsync.remote.document_store import (
    DocumentSnapshot, DocumentStore, Filter, RemoteStoreError, RemoteUnavailableError,
    Subscription, WriteOp, matches, strip_server_timestamps,
)
from billsync.remote.polling import PollingSubscription

logger = logging.getLogger("HttpDocumentStore")

class HttpDocumentStore(DocumentStore):
    """
    Adaptador para o servidor próprio (pasta backend/).
    O servidor sempre carimba lastModified com o próprio relógio; filtros são aplicados no cliente.
    """
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 10,
        poll_seconds: float = 5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.poll_seconds = poll_seconds

    async def _request(self, method: str, path: str, allow_missing: bool = False, **kwargs) -> Optional[httpx.Response]:
        try:
            response = await self.client.request(method, path, **kwargs)
            if allow_missing and response.status_code == 404:
                return None
            response.raise_for_status()
            return response
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise RemoteUnavailableError(f"Servidor inalcançável: {e}") from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"{method} {path}: {e}") from e

    # --- LEITURA ---

    async def get(self, user_id: str, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        response = await self._request("GET", f"/users/{user_id}/{collection}/{doc_id}", allow_missing=True)
        return response.json() if response is not None else None

    async def query(
        self, user_id: str, collection: str, filters: Optional[Sequence[Filter]] = None
    ) -> List[DocumentSnapshot]:
        response = await self._request("GET", f"/users/{user_id}/{collection}")
        snapshots = [DocumentSnapshot(**item) for item in response.json()]
        return [s for s in snapshots if matches(s.document, filters)]

    # --- ESCRITA ---

    async def set_merged(self, user_id: str, collection: str, doc_id: str, document: Dict[str, Any]):
        await self._request(
            "PUT",
            f"/users/{user_id}/{collection}/{doc_id}",
            params={"merge": "true"},
            json=strip_server_timestamps(document),
        )

    async def batch_write(self, user_id: str, ops: List[WriteOp]):
        if not ops: return
        payload = {
            "ops": [
                {**op.model_dump(exclude={"document"}), "document": strip_server_timestamps(op.document)}
                for op in ops
            ]
        }
        await self._request("POST", f"/users/{user_id}/batch", json=payload)

    # --- TEMPO REAL (polling) ---

    async def subscribe(self, user_id: str, collection: str) -> Subscription:
        subscription = PollingSubscription(self, user_id, collection, self.poll_seconds)
        subscription.start()
        return subscription

    async def aclose(self):
        await self.client.aclose()
