import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from billsync.data.local_store import LocalStore
from billsync.data.sync_repository import SyncRepository
from billsync.models.customer import Customer
from billsync.models.invoice import Invoice, InvoiceItem
from billsync.models.product import Product

logger = logging.getLogger("InvoiceRepository")

ITEM_FIELDS = ("quantity", "price", "amount")

class InvoiceRepository(SyncRepository[Invoice]):
    """
    Faturas e seus itens.
    Os itens viajam dentro do documento da fatura e são sempre substituídos por inteiro.
    Referências a cliente/produto vão também pelo cloud_id, pois o id local só vale neste dispositivo.
    """
    def __init__(self, store: LocalStore):
        super().__init__(store, Invoice)

    async def get_items(self, invoice_id: int) -> List[InvoiceItem]:
        async with self.store.session() as session:
            result = await session.exec(
                select(InvoiceItem).where(InvoiceItem.invoice_id == invoice_id).order_by(InvoiceItem.id)
            )
            return list(result.all())

    async def save_with_items(
        self, invoice: Invoice, items: List[InvoiceItem], device_id: str, user_id: Optional[str] = None
    ) -> Invoice:
        async with self.store.session() as session:
            target = await self._stage_local_write(session, invoice, device_id, user_id)
            await self.delete_children(session, target.id)
            for item in items:
                session.add(InvoiceItem(
                    invoice_id=target.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price=item.price,
                    amount=item.amount,
                ))
            await session.commit()
            await session.refresh(target)
            return target

    # --- HOOKS DE SINCRONIZAÇÃO ---

    async def export_children(self, entity: Invoice) -> Dict[str, Any]:
        async with self.store.session() as session:
            customer = await session.get(Customer, entity.customer_id)
            result = await session.exec(
                select(InvoiceItem).where(InvoiceItem.invoice_id == entity.id).order_by(InvoiceItem.id)
            )
            items = []
            for item in result.all():
                product = await session.get(Product, item.product_id)
                items.append({
                    "product_id": item.product_id,
                    "product_cloud_id": product.cloud_id if product else None,
                    "quantity": item.quantity,
                    "price": item.price,
                    "amount": item.amount,
                })

        return {
            "customer_cloud_id": customer.cloud_id if customer else None,
            "items": items,
        }

    async def resolve_references(
        self, session: AsyncSession, fields: Dict[str, Any], extras: Dict[str, Any], user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        values = dict(fields)
        cloud_id = extras.get("customer_cloud_id")
        customer_id = await self._local_id_for(session, Customer, cloud_id, user_id)
        if customer_id is not None:
            values["customer_id"] = customer_id
        elif cloud_id:
            logger.warning(
                f"Cliente {cloud_id} ainda não existe localmente; fatura {fields.get('invoice_number')} "
                f"fica com o id do outro dispositivo ({fields.get('customer_id')})"
            )
        return values

    async def import_children(
        self, session: AsyncSession, local_id: int, extras: Dict[str, Any], user_id: Optional[str] = None
    ):
        # Documento sem "items" não mexe nos itens locais
        if "items" not in extras: return

        await self.delete_children(session, local_id)
        for raw in extras["items"] or []:
            cloud_id = raw.get("product_cloud_id")
            product_id = await self._local_id_for(session, Product, cloud_id, user_id)
            if product_id is None:
                product_id = raw.get("product_id")
                if cloud_id:
                    logger.warning(
                        f"Produto {cloud_id} ainda não existe localmente; item da fatura {local_id} "
                        f"fica com o id do outro dispositivo ({product_id})"
                    )
            session.add(InvoiceItem(
                invoice_id=local_id,
                product_id=product_id,
                **{name: raw.get(name, 0) for name in ITEM_FIELDS},
            ))

    async def delete_children(self, session: AsyncSession, local_id: int):
        connection = await session.connection()
        await connection.execute(delete(InvoiceItem).where(InvoiceItem.invoice_id == local_id))

    async def _local_id_for(
        self, session: AsyncSession, model, cloud_id: Optional[str], user_id: Optional[str] = None
    ) -> Optional[int]:
        if not cloud_id: return None
        statement = select(model.id).where(model.cloud_id == cloud_id)
        if user_id:
            statement = statement.where(model.user_id == user_id)
        result = await session.exec(statement)
        return result.first()
