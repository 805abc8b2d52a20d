import logging
from typing import Any, List, NamedTuple, Optional, Sequence, Tuple, Union

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from billsync.models.company import Company
from billsync.models.customer import Customer
from billsync.models.product import Product
from billsync.models.invoice import Invoice, InvoiceItem
from billsync.models.sync_state import SyncMetadata, SyncTombstone

logger = logging.getLogger("LocalStore")

LOCAL_TABLES = [
    Company.__table__,
    Customer.__table__,
    Product.__table__,
    Invoice.__table__,
    InvoiceItem.__table__,
    SyncMetadata.__table__,
    SyncTombstone.__table__,
]

class WriteResult(NamedTuple):
    rowcount: int
    lastrowid: Optional[int]

Params = Union[None, dict, Sequence[Any]]
QueryResult = Union[List[dict], WriteResult]

class LocalStore:
    """
    Fachada do banco local: execução SQL crua (com ou sem transação) e sessões tipadas.
    """
    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def init_schema(self):
        # Só as tabelas locais; o metadata global também conhece a tabela do servidor
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all, tables=LOCAL_TABLES)

    def session(self) -> AsyncSession:
        return AsyncSession(self.engine, expire_on_commit=False)

    async def execute(self, statement: str, params: Params = None) -> QueryResult:
        async with self.engine.begin() as conn:
            return await self._run(conn, statement, params)

    async def execute_batch(self, statements: List[Tuple[str, Params]]) -> List[QueryResult]:
        """Executa em sequência numa única transação. Qualquer falha desfaz tudo."""
        results = []
        async with self.engine.begin() as conn:
            for statement, params in statements:
                results.append(await self._run(conn, statement, params))
        return results

    async def close(self):
        await self.engine.dispose()

    async def _run(self, conn: AsyncConnection, statement: str, params: Params) -> QueryResult:
        if params is None or isinstance(params, dict):
            result = await conn.execute(text(statement), params or {})
        else:
            # Parâmetros posicionais ("?") vão direto para o driver
            result = await conn.exec_driver_sql(statement, tuple(params))

        if result.returns_rows:
            return [dict(row._mapping) for row in result]
        return WriteResult(result.rowcount, result.lastrowid)
