import pytest
import pytest_asyncio
from saga_ledger.core.config import ORDERS_CONNECTION, PAYMENTS_CONNECTION
from saga_ledger.core.db import init_db, close_db
from saga_ledger.testing.in_memory_broker import InMemoryBroker

# Both services side by side, each on its own in-memory database
IN_MEMORY_DB_URLS = {
    ORDERS_CONNECTION: "sqlite://:memory:",
    PAYMENTS_CONNECTION: "sqlite://:memory:",
}


@pytest_asyncio.fixture
async def ledger_db():
    await init_db(ORDERS_CONNECTION, PAYMENTS_CONNECTION, db_urls=IN_MEMORY_DB_URLS, generate_schemas=True)
    yield
    await close_db()


@pytest.fixture
def broker():
    return InMemoryBroker()
