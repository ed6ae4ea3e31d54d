import logging
from typing import Any
from saga_ledger.core.config import ORDERS_CONNECTION
from saga_ledger.consumers.inbox_consumer import InboxConsumer
from saga_ledger.events.contracts import Event, PaymentResultEvent, parse_payment_message
from saga_ledger.models.order import Order, OrderInboxEntry, OrderStatus

log = logging.getLogger(__name__)


async def handle_payment_result(event: Event, conn: Any) -> None:
    """
    Consumer logic for 'PaymentProcessed' / 'PaymentFailed'.
    Moves the Order from PaymentPending to its terminal status. The saga ends here.
    """
    if not isinstance(event, PaymentResultEvent):
        # Account level notification (account created, deposit): nothing to update
        log.info(f"Event {event.id} carries no OrderId, recorded without effect.")
        return

    order = await Order.filter(id=event.order_id).using_db(conn).select_for_update().first()
    if not order:
        log.warning(f"Order {event.order_id} not found, payment result {event.id} ignored.")
        return

    # Only update if the order is still waiting for its payment
    if order.status.is_terminal:
        log.warning(f"Order {order.id} already {order.status.value}, payment result {event.id} ignored.")
        return

    order.status = OrderStatus.PAYMENT_PROCESSED if event.success else OrderStatus.PAYMENT_FAILED
    await order.save(update_fields=['status', 'updated_at'], using_db=conn)
    if event.success:
        log.info(f"Status UPDATE: Order {order.id} moved to {order.status.value}.")
    else:
        log.info(f"Status UPDATE: Order {order.id} moved to {order.status.value} due to: {event.reason}")


def build_payment_result_consumer() -> InboxConsumer:
    """Inbox consumer for the orders service, reading the payments -> orders queue."""
    return InboxConsumer(
        OrderInboxEntry,
        ORDERS_CONNECTION,
        parse_payment_message,
        handle_payment_result,
    )
