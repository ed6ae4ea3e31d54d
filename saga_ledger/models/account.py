from tortoise import fields, models
from saga_ledger.models.ledger import InboxEntry, OutboxEntry


class Account(models.Model):
    id = fields.IntField(primary_key=True)
    # At most one account per user
    user_id = fields.UUIDField(unique=True)
    balance = fields.DecimalField(max_digits=18, decimal_places=2, default=0)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "accounts"


class PaymentOutboxEntry(OutboxEntry):
    class Meta:
        table = "payments_outbox"
        indexes = [
            ("processed_at", "created_at"),  # Publisher polling
        ]


class PaymentInboxEntry(InboxEntry):
    class Meta:
        table = "payments_inbox"
