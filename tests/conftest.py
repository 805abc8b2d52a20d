from __future__ import annotations

import os
import tempfile

import pytest

# The backend reads DATABASE_URL at import time
_backend_dir = tempfile.mkdtemp(prefix="billsync-backend-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_backend_dir, 'server.db')}")

from billsync.bootstrap import BillSync
from billsync.config import Settings
from billsync.services.connectivity import Connectivity
from tests.fakes import InMemoryDocumentStore, RecordingSleep


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def remote():
    return InMemoryDocumentStore()


@pytest.fixture
async def connectivity():
    conn = Connectivity(online=True)
    yield conn
    await conn.aclose()


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def settings(tmp_path):
    return Settings(db_path=str(tmp_path / "billing.db"))


@pytest.fixture
async def app(settings, remote, connectivity, sleeper):
    """All sync components wired against the in-memory remote, schema created, nobody signed in."""
    billsync = BillSync(settings, remote=remote, connectivity=connectivity, sleep=sleeper)
    await billsync.store.init_schema()
    yield billsync
    await billsync.trigger.drain()
    await billsync.listener.disable()
    await billsync.store.close()


@pytest.fixture
async def user_id(app):
    """Signs a user up (local identity provider) and returns the account id."""
    result = await app.auth.sign_up("ana@example.com", "s3cret")
    assert result.success
    return result.user_id
