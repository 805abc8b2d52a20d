from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Optional, Tuple
from sqlalchemy import String, UniqueConstraint
from sqlmodel import Field, SQLModel

# Função auxiliar para timestamps UTC
def utc_now():
    return datetime.now(timezone.utc)

class SyncStatus(str, Enum):
    PENDING = "pending"   # Alterações locais ainda não confirmadas na nuvem
    SYNCED = "synced"

class SyncModel(SQLModel):
    """
    Classe Base para todas as entidades sincronizáveis.
    Envelope de sincronização: chave local, chave na nuvem, status e proveniência.
    """
    # Chave local (autoincremento). Nunca é usada como chave do documento remoto.
    id: Optional[int] = Field(default=None, primary_key=True)

    # Conta dona do registro; NULL = registro "não reclamado" (criado antes do login)
    user_id: Optional[str] = Field(default=None, index=True)

    # Id do documento remoto. Estável depois de atribuído; único por conta (ver cloud_id_unique)
    cloud_id: Optional[str] = Field(default=None, index=True)

    sync_status: SyncStatus = Field(
        default=SyncStatus.PENDING,
        sa_type=String,
        index=True
    )

    # Proveniência da última escrita (relógio local ou do servidor)
    last_modified: datetime = Field(default_factory=utc_now)
    last_modified_by: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utc_now)

    # Campos de domínio enviados para a nuvem (definidos em cada subclasse)
    DOMAIN_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @property
    def is_synced(self) -> bool:
        return self.sync_status == SyncStatus.SYNCED and bool(self.cloud_id)

def cloud_id_unique(table_name: str) -> UniqueConstraint:
    # Ids de documento só são únicos dentro de users/{user_id}/...
    return UniqueConstraint("user_id", "cloud_id", name=f"uq_{table_name}_user_cloud_id")
