from typing import Dict, Optional
from pydantic import BaseModel, Field

OFFLINE_ERROR = "offline"
NOT_AUTHENTICATED_ERROR = "Not authenticated"
SYNC_IN_PROGRESS_ERROR = "Sync already in progress"

class SyncResult(BaseModel):
    """Resultado de um passe de uma coleção. Nada no caminho de sync levanta exceção."""
    collection: str
    success: bool = True
    error: Optional[str] = None
    uploaded: int = 0
    downloaded: int = 0
    skipped: int = 0
    deleted: int = 0

    @classmethod
    def failure(cls, collection: str, error: str) -> "SyncResult":
        return cls(collection=collection, success=False, error=error)

class SyncAllResult(BaseModel):
    success: bool
    error: Optional[str] = None
    results: Dict[str, SyncResult] = Field(default_factory=dict)

class AuthResult(BaseModel):
    success: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    error: Optional[str] = None
