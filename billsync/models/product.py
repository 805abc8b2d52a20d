from typing import ClassVar, Optional, Tuple
from sqlmodel import Field
from .base import SyncModel, cloud_id_unique

class Product(SyncModel, table=True):
    __tablename__ = "products"
    __table_args__ = (cloud_id_unique("products"),)

    name: str = Field(index=True)
    description: Optional[str] = Field(default=None)
    price: float = Field(default=0)
    hsn_code: Optional[str] = Field(default=None)  # Código de classificação fiscal
    tax_rate: float = Field(default=0)
    stock: float = Field(default=0)

    DOMAIN_FIELDS: ClassVar[Tuple[str, ...]] = (
        "name", "description", "price", "hsn_code", "tax_rate", "stock"
    )
