from tortoise.transactions import in_transaction
from typing import List, Optional
from decimal import Decimal
from uuid import UUID
from saga_ledger.core.config import ORDERS_CONNECTION
from saga_ledger.events.contracts import ORDER_CREATED, OrderCreatedEvent, is_whole_cents
from saga_ledger.events.outbox_utility import create_outbox_event
from saga_ledger.models.order import Order, OrderOutboxEntry, OrderStatus


async def place_order(user_id: UUID, amount: Decimal) -> Order:
    """
    FAST PATH: Creates the Order and its OrderCreated outbox event atomically.
    The debit itself happens later in the payments service; the order waits in PaymentPending.
    """
    if amount <= 0:
        raise ValueError("Order amount must be positive.")
    if not is_whole_cents(amount):
        raise ValueError("Order amount must not have more than two decimal places.")

    async with in_transaction(ORDERS_CONNECTION) as conn:
        order = await Order.create(
            user_id=user_id,
            amount=amount,
            status=OrderStatus.PAYMENT_PENDING,
            using_db=conn
        )

        # ATOMIC EVENT: Ask the payments service to charge the user
        await create_outbox_event(
            OrderOutboxEntry,
            ORDER_CREATED,
            OrderCreatedEvent(order_id=order.id, user_id=order.user_id, amount=order.amount),
            conn
        )

    return order


async def get_order_by_id(order_id: int) -> Optional[Order]:
    return await Order.get_or_none(id=order_id)


async def list_orders(user_id: Optional[UUID] = None) -> List[Order]:
    """All orders, or one user's orders, newest first."""
    query = Order.all() if user_id is None else Order.filter(user_id=user_id)
    return await query.order_by('-id')
