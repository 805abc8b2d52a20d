"""
Contrato do repositório de documentos remoto.

Todos os caminhos ficam sob o namespace do usuário: users/{user_id}/{collection}/{doc_id}.
Os adaptadores (Firestore, HTTP) só precisam implementar get/query/set_merged/batch_write/subscribe.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

logger = logging.getLogger("DocumentStore")

class RemoteStoreError(Exception):
    """Falha de rede ou do repositório remoto. Único tipo levantado pelos adaptadores."""

class RemoteUnavailableError(RemoteStoreError):
    """Servidor inalcançável (conexão recusada, DNS...)"""

class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"

# Sentinela: o adaptador troca pelo relógio do servidor no momento da escrita
SERVER_TIMESTAMP = _ServerTimestamp()

Filter = Tuple[str, str, Any]

class WriteOp(BaseModel):
    collection: str
    doc_id: str
    document: Dict[str, Any] = Field(default_factory=dict)
    merge: bool = True
    delete: bool = False

class DocumentSnapshot(BaseModel):
    doc_id: str
    document: Dict[str, Any]

class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"

class ChangeEvent(BaseModel):
    type: ChangeType
    doc_id: str
    document: Optional[Dict[str, Any]] = None

_CLOSED = object()

class Subscription:
    """
    Fluxo de mudanças de uma coleção, consumido com `async for`.
    O produtor pode estar em outra thread (push_threadsafe). close() encerra a iteração.
    """
    def __init__(self, on_close: Optional[Callable[[], None]] = None):
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def on_close(self, callback: Callable[[], None]):
        self._on_close = callback

    def push(self, event: ChangeEvent):
        if self._closed: return
        self._queue.put_nowait(event)

    def push_threadsafe(self, event: ChangeEvent):
        self._loop.call_soon_threadsafe(self.push, event)

    def close(self):
        if self._closed: return
        self._closed = True
        if self._on_close:
            try:
                self._on_close()
            except Exception as e:
                logger.warning(f"Erro ao cancelar assinatura: {e}")
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            raise StopAsyncIteration
        return item

class DocumentStore(ABC):
    @abstractmethod
    async def get(self, user_id: str, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Documento ou None se não existir"""

    @abstractmethod
    async def query(
        self, user_id: str, collection: str, filters: Optional[Sequence[Filter]] = None
    ) -> List[DocumentSnapshot]:
        ...

    @abstractmethod
    async def set_merged(self, user_id: str, collection: str, doc_id: str, document: Dict[str, Any]):
        ...

    @abstractmethod
    async def batch_write(self, user_id: str, ops: List[WriteOp]):
        """Commit atômico: ou todas as operações valem, ou nenhuma"""

    @abstractmethod
    async def subscribe(self, user_id: str, collection: str) -> Subscription:
        ...

    async def aclose(self):
        pass

# --- UTILITÁRIOS COMPARTILHADOS PELOS ADAPTADORES ---

def read_path(document: Dict[str, Any], path: str) -> Any:
    """Lê campo aninhado com notação de ponto ("data.name")"""
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value

_OPERATORS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
    "in": lambda a, b: a in b,
}

def matches(document: Dict[str, Any], filters: Optional[Sequence[Filter]]) -> bool:
    for field, op, expected in filters or []:
        if op not in _OPERATORS:
            raise ValueError(f"Operador de filtro não suportado: {op}")
        if not _OPERATORS[op](read_path(document, field), expected):
            return False
    return True

def strip_server_timestamps(value: Any) -> Any:
    """Remove chaves com SERVER_TIMESTAMP (quem carimba é o servidor)"""
    if isinstance(value, dict):
        return {k: strip_server_timestamps(v) for k, v in value.items() if v is not SERVER_TIMESTAMP}
    if isinstance(value, list):
        return [strip_server_timestamps(v) for v in value]
    return value

def replace_server_timestamps(value: Any, replacement: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return replacement
    if isinstance(value, dict):
        return {k: replace_server_timestamps(v, replacement) for k, v in value.items()}
    if isinstance(value, list):
        return [replace_server_timestamps(v, replacement) for v in value]
    return value
