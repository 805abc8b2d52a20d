from typing import List, Optional
from sqlmodel import or_, select
from billsync.data.local_store import LocalStore
from billsync.data.sync_repository import SyncRepository
from billsync.models.customer import Customer

class CustomerRepository(SyncRepository[Customer]):
    def __init__(self, store: LocalStore):
        super().__init__(store, Customer)

    async def search(self, term: Optional[str] = None) -> List[Customer]:
        """Busca por nome ou telefone (sem termo = todos, ordenados por nome)"""
        statement = select(Customer)
        if term:
            pattern = f"%{term}%"
            statement = statement.where(or_(Customer.name.like(pattern), Customer.phone.like(pattern)))

        async with self.store.session() as session:
            result = await session.exec(statement.order_by(Customer.name))
            return list(result.all())
