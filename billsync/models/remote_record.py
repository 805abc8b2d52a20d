from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

class RemoteRecord(BaseModel):
    """
    Documento remoto desnormalizado para o formato local.
    `fields` já usa os nomes das colunas locais; `extras` carrega o que não é coluna
    (itens da fatura, referências por cloud_id).
    """
    cloud_id: str
    local_id: Optional[int] = None  # "id" embutido no documento (chave local do dispositivo de origem)
    fields: Dict[str, Any] = Field(default_factory=dict)
    extras: Dict[str, Any] = Field(default_factory=dict)
    last_modified: Optional[datetime] = None
    last_modified_by: Optional[str] = None
