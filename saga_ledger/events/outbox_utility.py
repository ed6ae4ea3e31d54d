from datetime import datetime
from typing import Any, Type
from saga_ledger.events.contracts import Event
from saga_ledger.models.ledger import OutboxEntry


async def create_outbox_event(
    outbox_model: Type[OutboxEntry],
    event_type: str,
    event: Event,
    conn: Any,
) -> OutboxEntry:
    """
    Creates a new Outbox row for `event` using the provided database connection (transaction).

    CRITICAL: Passing 'conn' ensures the event is created atomically with the business data.
    The row reuses the event's Id, so a duplicate publish carries the same deduplication key.
    """
    return await outbox_model.create(
        id=event.id,
        event_type=event_type,
        data=event.to_json(),
        using_db=conn,
    )


async def purge_processed_events(outbox_model: Type[OutboxEntry], older_than: datetime) -> int:
    """Deletes rows already handed to the broker before `older_than`. Pending rows are never touched."""
    return await outbox_model.filter(processed_at__isnull=False, processed_at__lt=older_than).delete()
