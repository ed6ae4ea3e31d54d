from enum import Enum
from tortoise import fields, models
from saga_ledger.models.ledger import InboxEntry, OutboxEntry


class OrderStatus(str, Enum):
    CREATED = "Created"
    PAYMENT_PENDING = "PaymentPending"  # Waiting for the payment service verdict
    PAYMENT_PROCESSED = "PaymentProcessed"
    PAYMENT_FAILED = "PaymentFailed"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.PAYMENT_PROCESSED, OrderStatus.PAYMENT_FAILED)


class Order(models.Model):
    id = fields.IntField(primary_key=True)
    user_id = fields.UUIDField()
    amount = fields.DecimalField(max_digits=18, decimal_places=2)
    status = fields.CharEnumField(OrderStatus, default=OrderStatus.PAYMENT_PENDING)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "orders"
        indexes = [
            ("user_id",),                # User order history
            ("status",),                 # Status-based filtering
        ]

    def __str__(self):
        return f"Order {self.id} - Status: {self.status}"


class OrderOutboxEntry(OutboxEntry):
    class Meta:
        table = "orders_outbox"
        indexes = [
            ("processed_at", "created_at"),  # Publisher polling
        ]


class OrderInboxEntry(InboxEntry):
    class Meta:
        table = "orders_inbox"
