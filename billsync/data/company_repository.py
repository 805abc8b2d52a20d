from billsync.data.local_store import LocalStore
from billsync.data.sync_repository import SyncRepository
from billsync.models.company import Company

class CompanyRepository(SyncRepository[Company]):
    """Empresa é singleton: a camada de serviço sempre reaproveita a primeira linha."""
    def __init__(self, store: LocalStore):
        super().__init__(store, Company)
