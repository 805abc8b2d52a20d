from typing import ClassVar, Optional, Tuple
from sqlmodel import Field, SQLModel
from .base import SyncModel, cloud_id_unique

class Invoice(SyncModel, table=True):
    __tablename__ = "invoices"
    __table_args__ = (cloud_id_unique("invoices"),)

    # Número único e sequencial por ano (ex: INV-2026-001)
    invoice_number: str = Field(index=True, unique=True)
    customer_id: int = Field(index=True)
    date: str = Field(index=True)  # ISO (YYYY-MM-DD)

    # Campos monetários calculados fora do núcleo de sync
    subtotal: float = Field(default=0)
    discount_percentage: float = Field(default=0)
    discount_amount: float = Field(default=0)
    tax_amount: float = Field(default=0)
    total: float = Field(default=0)
    paid_amount: float = Field(default=0)
    balance: float = Field(default=0)

    status: str = Field(default="pending")
    notes: Optional[str] = Field(default=None)

    DOMAIN_FIELDS: ClassVar[Tuple[str, ...]] = (
        "invoice_number", "customer_id", "date", "subtotal", "discount_percentage",
        "discount_amount", "tax_amount", "total", "paid_amount", "balance", "status", "notes",
    )

class InvoiceItem(SQLModel, table=True):
    """Linha da fatura. Apagada e reinserida por inteiro a cada atualização."""
    __tablename__ = "invoice_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(index=True)
    product_id: int = Field(index=True)
    quantity: float
    price: float
    amount: float
