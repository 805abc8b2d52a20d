from typing import ClassVar, Optional, Tuple
from sqlmodel import Field
from .base import SyncModel, cloud_id_unique

class Company(SyncModel, table=True):
    """Dados da empresa emissora. No máximo uma linha por banco local."""
    __tablename__ = "companies"
    __table_args__ = (cloud_id_unique("companies"),)

    name: str
    phone: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    tax_id: Optional[str] = Field(default=None)  # GSTIN
    logo: Optional[str] = Field(default=None)    # Imagem inline (data URI / base64)

    DOMAIN_FIELDS: ClassVar[Tuple[str, ...]] = ("name", "phone", "address", "tax_id", "logo")
