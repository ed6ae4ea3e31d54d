import logging
from typing import Any
from saga_ledger.core.config import PAYMENTS_CONNECTION
from saga_ledger.consumers.inbox_consumer import InboxConsumer
from saga_ledger.events.contracts import (
    REASON_ACCOUNT_NOT_FOUND,
    REASON_INSUFFICIENT_FUNDS,
    OrderCreatedEvent,
    PaymentResultEvent,
    parse_order_created,
)
from saga_ledger.events.outbox_utility import create_outbox_event
from saga_ledger.models.account import Account, PaymentInboxEntry, PaymentOutboxEntry

log = logging.getLogger(__name__)


async def handle_order_created(event: OrderCreatedEvent, conn: Any) -> PaymentResultEvent:
    """
    Consumer logic for 'OrderCreated'. Debits the user's account or rejects the payment.

    Runs inside the inbox transaction: the debit and the result event commit together.
    """
    log.info(f"--- Worker: CHARGING {event.amount} for Order {event.order_id} ---")

    # CRITICAL: Lock the account row so two concurrent debits never read the same balance
    account = await Account.filter(user_id=event.user_id).using_db(conn).select_for_update().first()

    if account is None:
        result = PaymentResultEvent(order_id=event.order_id, success=False, reason=REASON_ACCOUNT_NOT_FOUND)
    elif account.balance < event.amount:
        result = PaymentResultEvent(order_id=event.order_id, success=False, reason=REASON_INSUFFICIENT_FUNDS)
    else:
        account.balance -= event.amount
        await account.save(update_fields=['balance', 'updated_at'], using_db=conn)
        result = PaymentResultEvent(order_id=event.order_id, success=True)

    await create_outbox_event(PaymentOutboxEntry, result.event_type, result, conn)

    if result.success:
        log.info(f"SUCCESS: Order {event.order_id} paid, balance now {account.balance}")
    else:
        log.info(f"FAILURE: Payment for Order {event.order_id} rejected. Reason: {result.reason}")
    return result


def build_payment_request_consumer() -> InboxConsumer:
    """Inbox consumer for the payments service, reading the orders -> payments queue."""
    return InboxConsumer(
        PaymentInboxEntry,
        PAYMENTS_CONNECTION,
        parse_order_created,
        handle_order_created,
    )
