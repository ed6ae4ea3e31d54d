"""Builders for the deliveries each service's inbox receives."""
from decimal import Decimal
from uuid import uuid4
from saga_ledger.events.contracts import ORDER_CREATED, OrderCreatedEvent, PaymentResultEvent
from saga_ledger.testing.in_memory_broker import FakeIncomingMessage


def order_created_message(order_id=1, user_id=None, amount="100.00", event_id=None, headers=None):
    event = OrderCreatedEvent(
        id=event_id or uuid4(),
        order_id=order_id,
        user_id=user_id or uuid4(),
        amount=Decimal(amount),
    )
    return FakeIncomingMessage(event.to_json().encode("utf-8"), str(event.id), ORDER_CREATED, headers)


def payment_result_message(order_id, success=True, reason=None, event_id=None):
    event = PaymentResultEvent(id=event_id or uuid4(), order_id=order_id, success=success, reason=reason)
    return FakeIncomingMessage(event.to_json().encode("utf-8"), str(event.id), event.event_type)
