# saga_ledger/scripts/seed_data.py
import asyncio
import logging
from decimal import Decimal
from uuid import UUID
from saga_ledger.core.config import PAYMENTS_CONNECTION
from saga_ledger.core.db import init_db, close_db
from saga_ledger.core.exceptions import AccountAlreadyExistsError
from saga_ledger.core.log_config import setup_logging
from saga_ledger.models.account import Account
from saga_ledger.services.payment_service import create_account, deposit

log = logging.getLogger("seed_data")

# Fixed ids so the demo users are easy to reuse from curl
DEMO_ACCOUNTS = {
    UUID("00000000-0000-0000-0000-000000000001"): Decimal("150.00"),
    UUID("00000000-0000-0000-0000-000000000002"): Decimal("20.00"),
}


async def seed():
    for user_id, target in DEMO_ACCOUNTS.items():
        try:
            await create_account(user_id)
        except AccountAlreadyExistsError:
            pass
        account = await Account.get(user_id=user_id)
        # Top up to the target balance; deposits go through the outbox like any other
        if account.balance < target:
            account = await deposit(user_id, target - account.balance)
        log.info(f"Account for user {user_id}: balance {account.balance}")


async def main():
    setup_logging()
    await init_db(PAYMENTS_CONNECTION)
    try:
        await seed()
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
