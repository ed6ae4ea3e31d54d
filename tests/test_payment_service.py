import json
import pytest
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4
from tortoise.exceptions import OperationalError
from saga_ledger.core.exceptions import AccountAlreadyExistsError, AccountNotFoundError, ConcurrencyConflictError
from saga_ledger.events.contracts import ACCOUNT_CREATED, PAYMENT_PROCESSED
from saga_ledger.models.account import Account, PaymentOutboxEntry
from saga_ledger.services.payment_service import create_account, deposit, get_account


@pytest.mark.asyncio
async def test_create_account_starts_at_zero(ledger_db):
    user_id = uuid4()

    account = await create_account(user_id)

    assert account.balance == Decimal("0")
    assert (await get_account(user_id)).id == account.id
    entries = await PaymentOutboxEntry.all()
    assert [e.event_type for e in entries] == [ACCOUNT_CREATED]


@pytest.mark.asyncio
async def test_create_account_twice_is_rejected(ledger_db):
    user_id = uuid4()
    await create_account(user_id)

    with pytest.raises(AccountAlreadyExistsError):
        await create_account(user_id)

    assert await Account.filter(user_id=user_id).count() == 1


@pytest.mark.asyncio
async def test_deposit_credits_balance_and_records_payment_processed(ledger_db):
    user_id = uuid4()
    await Account.create(user_id=user_id, balance=Decimal("50.00"))

    account = await deposit(user_id, Decimal("100.00"))

    assert account.balance == Decimal("150.00")
    assert (await get_account(user_id)).balance == Decimal("150.00")

    entries = await PaymentOutboxEntry.filter(event_type=PAYMENT_PROCESSED)
    assert len(entries) == 1
    payload = json.loads(entries[0].data)
    assert payload["UserId"] == str(user_id)
    assert Decimal(payload["Amount"]) == Decimal("100.00")
    assert Decimal(payload["NewBalance"]) == Decimal("150.00")


@pytest.mark.asyncio
async def test_deposit_to_unknown_account(ledger_db):
    with pytest.raises(AccountNotFoundError):
        await deposit(uuid4(), Decimal("10.00"))

    assert await PaymentOutboxEntry.all().count() == 0


@pytest.mark.asyncio
async def test_deposit_rejects_unstorable_amounts():
    with pytest.raises(ValueError):
        await deposit(uuid4(), Decimal("-5"))
    with pytest.raises(ValueError):
        await deposit(uuid4(), Decimal("0.004"))


@pytest.mark.asyncio
async def test_lock_failure_surfaces_as_conflict():
    with patch('saga_ledger.services.payment_service.in_transaction') as mock_in_transaction:
        mock_in_transaction.return_value.__aenter__.side_effect = OperationalError("could not obtain lock on row")

        with pytest.raises(ConcurrencyConflictError):
            await deposit(uuid4(), Decimal("10.00"))


@pytest.mark.asyncio
async def test_get_unknown_account(ledger_db):
    with pytest.raises(AccountNotFoundError):
        await get_account(uuid4())
