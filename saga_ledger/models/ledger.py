from tortoise import fields, models
import uuid


class OutboxEntry(models.Model):
    """
    Pending outgoing event, written in the same transaction as the business
    change it reports on. The row id doubles as the event "Id" carried in the
    payload, which is what the receiving inbox deduplicates on.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    event_type = fields.CharField(max_length=128)  # e.g. 'OrderCreated'
    data = fields.TextField()  # Serialized event body, published as-is
    created_at = fields.DatetimeField(auto_now_add=True)
    processed_at = fields.DatetimeField(null=True)  # Set once the broker accepted it
    attempts = fields.IntField(default=0)  # Failed publish attempts
    last_error = fields.TextField(null=True)

    class Meta:
        abstract = True

    def __str__(self):
        state = "Processed" if self.processed_at else "Pending"
        return f"Event {self.id} of type '{self.event_type}' ({state})"


class InboxEntry(models.Model):
    """
    One row per distinct incoming event. The primary key is the event id from
    the message itself, never a locally generated key.
    """
    id = fields.UUIDField(primary_key=True)
    message_type = fields.CharField(max_length=128)
    data = fields.TextField()
    received_at = fields.DatetimeField(auto_now_add=True)
    processed_at = fields.DatetimeField(null=True)

    class Meta:
        abstract = True
