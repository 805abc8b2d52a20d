import os
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

DATABASE_NAME = "billing.db"

def get_db_path() -> str:
    """
    Define o caminho do banco de dados local.
    BILLSYNC_DB_PATH tem prioridade; no Android usamos o armazenamento interno gravável.
    """
    configured = os.getenv("BILLSYNC_DB_PATH")
    if configured:
        return configured

    if "ANDROID_ARGUMENT" in os.environ:
        storage_path = os.environ.get("FLET_APP_STORAGE_DATA", ".")
        return os.path.join(storage_path, DATABASE_NAME)

    # Desenvolvimento Desktop
    return DATABASE_NAME

def _apply_pragmas(dbapi_connection, connection_record):
    # --- CRÍTICO: Otimizações de Performance ---
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.execute("PRAGMA temp_store=MEMORY;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()

def create_engine(db_path: str = None) -> AsyncEngine:
    """
    Cria o engine assíncrono (aiosqlite) com os PRAGMAs aplicados a cada nova conexão.
    """
    db_path = db_path or get_db_path()
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        connect_args={"timeout": 10.0},
    )
    event.listen(engine.sync_engine, "connect", _apply_pragmas)
    return engine
