import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import firebase_admin
from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError

from billsync.remote.document_store import (
    ChangeEvent, ChangeType, DocumentSnapshot, DocumentStore, Filter, RemoteStoreError,
    Subscription, WriteOp, replace_server_timestamps,
)

logger = logging.getLogger("FirestoreStore")

_firestore_client = None

def get_firestore_client():
    """Retorna o cliente Firestore em cache (credenciais via GOOGLE_APPLICATION_CREDENTIALS)."""
    global _firestore_client
    if _firestore_client is not None:
        return _firestore_client

    if not firebase_admin._apps:
        firebase_admin.initialize_app()
    _firestore_client = firestore.client()
    return _firestore_client

class FirestoreDocumentStore(DocumentStore):
    """
    Adaptador Firestore. O SDK é síncrono: cada chamada roda em thread (asyncio.to_thread)
    e os callbacks de on_snapshot são repassados ao event loop pela Subscription.
    """
    def __init__(self, client=None, client_factory: Callable[[], Any] = get_firestore_client):
        self._client = client
        self._client_factory = client_factory

    @property
    def client(self):
        if self._client is None:
            # Credenciais ausentes ou inválidas: o app segue offline em vez de cair
            try:
                self._client = self._client_factory()
            except (GoogleAuthError, ValueError, OSError) as e:
                raise RemoteStoreError(f"Firestore indisponível: {e}") from e
        return self._client

    def _collection(self, user_id: str, collection: str):
        return self.client.collection("users").document(user_id).collection(collection)

    async def _call(self, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except (GoogleAPIError, GoogleAuthError) as e:
            raise RemoteStoreError(f"Firestore: {e}") from e

    @staticmethod
    def _encode(document: Dict[str, Any]) -> Dict[str, Any]:
        return replace_server_timestamps(document, firestore.SERVER_TIMESTAMP)

    # --- LEITURA ---

    async def get(self, user_id: str, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ref = self._collection(user_id, collection).document(doc_id)
        snapshot = await self._call(ref.get)
        return snapshot.to_dict() if snapshot.exists else None

    async def query(
        self, user_id: str, collection: str, filters: Optional[Sequence[Filter]] = None
    ) -> List[DocumentSnapshot]:
        ref = self._collection(user_id, collection)
        for field, op, value in filters or []:
            ref = ref.where(filter=firestore.FieldFilter(field, op, value))

        snapshots = await self._call(lambda: list(ref.stream()))
        return [DocumentSnapshot(doc_id=s.id, document=s.to_dict() or {}) for s in snapshots]

    # --- ESCRITA ---

    async def set_merged(self, user_id: str, collection: str, doc_id: str, document: Dict[str, Any]):
        ref = self._collection(user_id, collection).document(doc_id)
        await self._call(lambda: ref.set(self._encode(document), merge=True))

    async def batch_write(self, user_id: str, ops: List[WriteOp]):
        if not ops: return

        def commit():
            batch = self.client.batch()
            for op in ops:
                ref = self._collection(user_id, op.collection).document(op.doc_id)
                if op.delete:
                    batch.delete(ref)
                elif op.merge:
                    batch.set(ref, self._encode(op.document), merge=True)
                else:
                    batch.set(ref, self._encode(op.document))
            batch.commit()

        await self._call(commit)

    # --- TEMPO REAL ---

    async def subscribe(self, user_id: str, collection: str) -> Subscription:
        subscription = Subscription()

        def on_snapshot(collection_snapshot, changes, read_time):
            # Roda na thread do watch do SDK
            for change in changes:
                change_type = ChangeType(change.type.name.lower())
                document = None if change_type == ChangeType.REMOVED else change.document.to_dict()
                subscription.push_threadsafe(
                    ChangeEvent(type=change_type, doc_id=change.document.id, document=document)
                )

        try:
            watch = self._collection(user_id, collection).on_snapshot(on_snapshot)
        except (GoogleAPIError, GoogleAuthError) as e:
            raise RemoteStoreError(f"Firestore: {e}") from e

        subscription.on_close(watch.unsubscribe)
        return subscription
