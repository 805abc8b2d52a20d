import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from backend.database import RemoteDocument, get_session, init_db, server_now

logger = logging.getLogger("Backend")

class BatchOp(BaseModel):
    collection: str
    doc_id: str
    document: Dict[str, Any] = Field(default_factory=dict)
    merge: bool = True
    delete: bool = False

class BatchRequest(BaseModel):
    ops: List[BatchOp]

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield

app = FastAPI(title="BillSync - Servidor de Documentos", lifespan=lifespan)

def deep_merge(current: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Mescla mapas aninhados campo a campo (listas e valores simples são substituídos)"""
    merged = dict(current)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged

async def _find(session: AsyncSession, user_id: str, collection: str, doc_id: str) -> Optional[RemoteDocument]:
    statement = select(RemoteDocument).where(
        RemoteDocument.user_id == user_id,
        RemoteDocument.collection == collection,
        RemoteDocument.doc_id == doc_id,
    )
    result = await session.exec(statement)
    return result.first()

async def _write(
    session: AsyncSession, user_id: str, collection: str, doc_id: str, document: Dict[str, Any], merge: bool
) -> RemoteDocument:
    now = server_now()
    existing = await _find(session, user_id, collection, doc_id)
    body = deep_merge(existing.body, document) if (existing and merge) else dict(document)
    # O relógio do servidor é a fonte de lastModified
    body["lastModified"] = now.isoformat()

    record = existing or RemoteDocument(user_id=user_id, collection=collection, doc_id=doc_id)
    record.body = body
    record.last_modified = now
    session.add(record)
    return record

@app.get("/")
async def root():
    return {"status": "online", "time": server_now().isoformat()}

@app.get("/users/{user_id}/{collection}")
async def list_documents(user_id: str, collection: str, session: AsyncSession = Depends(get_session)):
    statement = select(RemoteDocument).where(
        RemoteDocument.user_id == user_id, RemoteDocument.collection == collection
    ).order_by(RemoteDocument.id)
    result = await session.exec(statement)
    return [{"doc_id": r.doc_id, "document": r.body} for r in result.all()]

@app.get("/users/{user_id}/{collection}/{doc_id}")
async def get_document(user_id: str, collection: str, doc_id: str, session: AsyncSession = Depends(get_session)):
    record = await _find(session, user_id, collection, doc_id)
    if not record:
        raise HTTPException(status_code=404, detail="Documento não encontrado.")
    return record.body

@app.put("/users/{user_id}/{collection}/{doc_id}")
async def put_document(
    user_id: str,
    collection: str,
    doc_id: str,
    document: Dict[str, Any],
    merge: bool = False,
    session: AsyncSession = Depends(get_session),
):
    record = await _write(session, user_id, collection, doc_id, document, merge)
    await session.commit()
    return record.body

@app.post("/users/{user_id}/batch")
async def batch_write(user_id: str, payload: BatchRequest, session: AsyncSession = Depends(get_session)):
    """
    Commit atômico: todas as operações na mesma transação.
    Qualquer erro desfaz o lote inteiro.
    """
    try:
        for op in payload.ops:
            if op.delete:
                existing = await _find(session, user_id, op.collection, op.doc_id)
                if existing:
                    await session.delete(existing)
            else:
                await _write(session, user_id, op.collection, op.doc_id, op.document, op.merge)
            # Mantém a visão consistente para operações seguintes no mesmo lote
            await session.flush()

        await session.commit()
        return {"status": "success", "written": len(payload.ops)}

    except Exception as e:
        await session.rollback()
        logger.error(f"ERRO NO BATCH ({user_id}): {e}")
        raise HTTPException(status_code=500, detail=str(e))
