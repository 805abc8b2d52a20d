import logging
from typing import Dict, List, Optional

from billsync.data.company_repository import CompanyRepository
from billsync.data.customer_repository import CustomerRepository
from billsync.data.invoice_repository import InvoiceRepository
from billsync.data.product_repository import ProductRepository
from billsync.models.company import Company
from billsync.models.customer import Customer
from billsync.models.invoice import Invoice, InvoiceItem
from billsync.models.product import Product
from billsync.services.collections import COMPANY, CUSTOMERS, INVOICES, PRODUCTS
from billsync.services.sync_trigger import SyncTrigger

logger = logging.getLogger("RecordsService")

class RecordsService:
    """
    API de escrita local usada pela UI.
    Toda escrita fica pendente e agenda o sync da coleção em segundo plano;
    a escrita local vale mesmo que o sync falhe.
    """
    def __init__(
        self,
        company: CompanyRepository,
        customers: CustomerRepository,
        products: ProductRepository,
        invoices: InvoiceRepository,
        device,
        auth,
        trigger: SyncTrigger,
    ):
        self.company = company
        self.customers = customers
        self.products = products
        self.invoices = invoices
        self.device = device
        self.auth = auth
        self.trigger = trigger

    def _stamp(self) -> Dict[str, Optional[str]]:
        return {"device_id": self.device.device_id, "user_id": self.auth.current_user_id()}

    # --- ESCRITA ---

    async def save_company(self, company: Company) -> Company:
        # Singleton: sempre sobre a linha existente
        existing = await self.company.first()
        if existing:
            company.id = existing.id
        saved = await self.company.save(company, **self._stamp())
        self.trigger.schedule(COMPANY.name)
        return saved

    async def save_customer(self, customer: Customer) -> Customer:
        saved = await self.customers.save(customer, **self._stamp())
        self.trigger.schedule(CUSTOMERS.name)
        return saved

    async def save_product(self, product: Product) -> Product:
        saved = await self.products.save(product, **self._stamp())
        self.trigger.schedule(PRODUCTS.name)
        return saved

    async def save_invoice(self, invoice: Invoice, items: List[InvoiceItem]) -> Invoice:
        saved = await self.invoices.save_with_items(invoice, items, **self._stamp())
        self.trigger.schedule(INVOICES.name)
        return saved

    async def delete_customer(self, customer_id: int) -> bool:
        return await self._delete(self.customers, CUSTOMERS.name, customer_id)

    async def delete_product(self, product_id: int) -> bool:
        return await self._delete(self.products, PRODUCTS.name, product_id)

    async def delete_invoice(self, invoice_id: int) -> bool:
        return await self._delete(self.invoices, INVOICES.name, invoice_id)

    async def _delete(self, repository, collection: str, entity_id: int) -> bool:
        deleted = await repository.delete(entity_id, tombstone_collection=collection)
        if deleted:
            self.trigger.schedule(collection)
        else:
            logger.warning(f"[{collection}] Registro {entity_id} não encontrado para exclusão")
        return deleted

    # --- LEITURA ---

    async def get_company(self) -> Optional[Company]:
        return await self.company.first()

    async def list_customers(self, search: Optional[str] = None) -> List[Customer]:
        return await self.customers.search(search)

    async def list_products(self, search: Optional[str] = None) -> List[Product]:
        return await self.products.search(search)

    async def list_invoices(self) -> List[Invoice]:
        return await self.invoices.list_all()

    async def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        return await self.invoices.get(invoice_id)

    async def get_invoice_items(self, invoice_id: int) -> List[InvoiceItem]:
        return await self.invoices.get_items(invoice_id)
