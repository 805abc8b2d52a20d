from typing import ClassVar, Optional, Tuple
from sqlmodel import Field
from .base import SyncModel, cloud_id_unique

class Customer(SyncModel, table=True):
    __tablename__ = "customers"
    __table_args__ = (cloud_id_unique("customers"),)

    name: str = Field(index=True)
    phone: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    tax_id: Optional[str] = Field(default=None)

    DOMAIN_FIELDS: ClassVar[Tuple[str, ...]] = ("name", "phone", "address", "tax_id")
