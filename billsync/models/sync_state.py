from datetime import datetime
from typing import Optional
from sqlmodel import Field, SQLModel
from .base import utc_now

class SyncMetadata(SQLModel, table=True):
    """Uma linha por coleção: quando foi o último passe e como terminou"""
    __tablename__ = "sync_metadata"

    id: Optional[int] = Field(default=None, primary_key=True)
    collection_name: str = Field(unique=True)
    last_sync_time: Optional[datetime] = Field(default=None)
    sync_status: str = Field(default="idle")  # idle | synced | error
    pending_count: int = Field(default=0)

class SyncTombstone(SQLModel, table=True):
    """Exclusão local aguardando propagação para a nuvem"""
    __tablename__ = "sync_tombstones"

    id: Optional[int] = Field(default=None, primary_key=True)
    collection_name: str = Field(index=True)
    cloud_id: str
    deleted_at: datetime = Field(default_factory=utc_now)
