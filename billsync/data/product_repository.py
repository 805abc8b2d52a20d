from typing import List, Optional
from sqlmodel import or_, select
from billsync.data.local_store import LocalStore
from billsync.data.sync_repository import SyncRepository
from billsync.models.product import Product

class ProductRepository(SyncRepository[Product]):
    def __init__(self, store: LocalStore):
        super().__init__(store, Product)

    async def search(self, term: Optional[str] = None) -> List[Product]:
        statement = select(Product)
        if term:
            pattern = f"%{term}%"
            statement = statement.where(or_(Product.name.like(pattern), Product.hsn_code.like(pattern)))

        async with self.store.session() as session:
            result = await session.exec(statement.order_by(Product.name))
            return list(result.all())
