# saga_ledger/models/__init__.py
from .account import Account, PaymentInboxEntry, PaymentOutboxEntry
from .ledger import InboxEntry, OutboxEntry
from .order import Order, OrderInboxEntry, OrderOutboxEntry, OrderStatus

# Export all models
__all__ = [
    "Account",
    "InboxEntry",
    "Order",
    "OrderInboxEntry",
    "OrderOutboxEntry",
    "OrderStatus",
    "OutboxEntry",
    "PaymentInboxEntry",
    "PaymentOutboxEntry",
]
