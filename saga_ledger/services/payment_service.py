from tortoise.exceptions import IntegrityError, OperationalError
from tortoise.transactions import in_transaction
from decimal import Decimal
from uuid import UUID
from saga_ledger.core.config import PAYMENTS_CONNECTION
from saga_ledger.core.exceptions import AccountAlreadyExistsError, AccountNotFoundError, ConcurrencyConflictError
from saga_ledger.events.contracts import (
    ACCOUNT_CREATED,
    PAYMENT_PROCESSED,
    AccountCreatedEvent,
    FundsDepositedEvent,
    is_whole_cents,
)
from saga_ledger.events.outbox_utility import create_outbox_event
from saga_ledger.models.account import Account, PaymentOutboxEntry


async def create_account(user_id: UUID) -> Account:
    """Opens the user's single account with a zero balance."""
    if await Account.filter(user_id=user_id).exists():
        raise AccountAlreadyExistsError("Account already exists")

    try:
        async with in_transaction(PAYMENTS_CONNECTION) as conn:
            account = await Account.create(user_id=user_id, balance=Decimal("0"), using_db=conn)
            await create_outbox_event(PaymentOutboxEntry, ACCOUNT_CREATED, AccountCreatedEvent(user_id=user_id), conn)
    except IntegrityError as e:
        # Lost the race against a concurrent request for the same user
        raise AccountAlreadyExistsError("Account already exists") from e
    return account


async def deposit(user_id: UUID, amount: Decimal) -> Account:
    """
    Credits the account and records a PaymentProcessed notification in the same transaction.

    The row is locked for the duration, so a deposit never interleaves with an
    inbox-driven debit of the same account.
    """
    if amount <= 0:
        raise ValueError("Amount must be positive")
    if not is_whole_cents(amount):
        raise ValueError("Amount must not have more than two decimal places")

    try:
        async with in_transaction(PAYMENTS_CONNECTION) as conn:
            account = await Account.filter(user_id=user_id).using_db(conn).select_for_update().first()
            if account is None:
                raise AccountNotFoundError(f"Account for user {user_id} not found")

            account.balance += amount
            await account.save(update_fields=['balance', 'updated_at'], using_db=conn)

            await create_outbox_event(
                PaymentOutboxEntry,
                PAYMENT_PROCESSED,
                FundsDepositedEvent(user_id=user_id, amount=amount, new_balance=account.balance),
                conn
            )
    except OperationalError as e:
        # Lock timeout or serialization failure on the account row
        raise ConcurrencyConflictError("Concurrency conflict occurred") from e
    return account


async def get_account(user_id: UUID) -> Account:
    account = await Account.get_or_none(user_id=user_id)
    if account is None:
        raise AccountNotFoundError(f"Account for user {user_id} not found")
    return account
