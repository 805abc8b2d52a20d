import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel import Field, SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# Carrega as variáveis do arquivo .env
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    raise ValueError("A variável de ambiente DATABASE_URL não está definida!")

engine_options = {
    "echo": os.getenv("SQL_ECHO", "0") == "1",  # Logs de SQL só quando pedidos
    "future": True,
}
# SQLite (dev/testes): sem pool, cada requisição abre a própria conexão
if DATABASE_URL.startswith("sqlite"):
    engine_options["poolclass"] = NullPool

engine = create_async_engine(DATABASE_URL, **engine_options)

def server_now() -> datetime:
    return datetime.now(timezone.utc)

class RemoteDocument(SQLModel, table=True):
    """Documento JSON guardado em users/{user_id}/{collection}/{doc_id}"""
    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("user_id", "collection", "doc_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    collection: str = Field(index=True)
    doc_id: str
    body: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    last_modified: datetime = Field(default_factory=server_now)

async def init_db():
    """Cria a tabela de documentos na inicialização."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all, tables=[RemoteDocument.__table__])

async def get_session() -> AsyncSession:
    """Injeção de dependência para rotas FastAPI"""
    async_session = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session() as session:
        yield session
