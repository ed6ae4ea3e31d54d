import logging
from dataclasses import dataclass
from typing import Callable, Optional, Type
from saga_ledger.core.config import (
    CONSUMER_SHUTDOWN_TIMEOUT,
    ORDER_PAYMENTS_QUEUE,
    ORDERS_CONNECTION,
    PAYMENT_RESULTS_QUEUE,
    PAYMENTS_CONNECTION,
)
from saga_ledger.consumers.inbox_consumer import InboxConsumer
from saga_ledger.consumers.outbox_publisher import OutboxPublisher
from saga_ledger.consumers.payment_request_consumer import build_payment_request_consumer
from saga_ledger.consumers.payment_result_consumer import build_payment_result_consumer
from saga_ledger.messaging.broker import BrokerClient
from saga_ledger.models.account import PaymentOutboxEntry
from saga_ledger.models.ledger import OutboxEntry
from saga_ledger.models.order import OrderOutboxEntry

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceWiring:
    """Which outbox feeds which queue, and which queue feeds which inbox."""
    name: str
    outbox_model: Type[OutboxEntry]
    outbound_queue: str
    inbound_queue: str
    build_consumer: Callable[[], InboxConsumer]


SERVICES = {
    ORDERS_CONNECTION: ServiceWiring(
        name=ORDERS_CONNECTION,
        outbox_model=OrderOutboxEntry,
        outbound_queue=ORDER_PAYMENTS_QUEUE,
        inbound_queue=PAYMENT_RESULTS_QUEUE,
        build_consumer=build_payment_result_consumer,
    ),
    PAYMENTS_CONNECTION: ServiceWiring(
        name=PAYMENTS_CONNECTION,
        outbox_model=PaymentOutboxEntry,
        outbound_queue=PAYMENT_RESULTS_QUEUE,
        inbound_queue=ORDER_PAYMENTS_QUEUE,
        build_consumer=build_payment_request_consumer,
    ),
}


class ServiceRuntime:
    """
    The background half of one service: its outbox publisher and its inbox consumer.

    Both talk to the rest of the system only through the database and the broker.
    """

    def __init__(self, service: str, broker: Optional[BrokerClient] = None) -> None:
        if service not in SERVICES:
            raise ValueError(f"Unknown service: {service}")
        self.wiring = SERVICES[service]
        self.broker = broker or BrokerClient()
        self.publisher = OutboxPublisher(self.wiring.outbox_model, self.broker, self.wiring.outbound_queue)
        self.consumer = self.wiring.build_consumer()

    async def start(self) -> None:
        await self.broker.connect()
        await self.broker.declare_queue(self.wiring.outbound_queue)
        await self.broker.declare_queue(self.wiring.inbound_queue)
        await self.publisher.start()
        await self.consumer.start(self.broker, self.wiring.inbound_queue)
        log.info(f"{self.wiring.name} background workers started.")

    async def stop(self) -> None:
        # Stop taking messages first so no inbox row is left reserved without its outcome
        await self.consumer.stop(timeout=CONSUMER_SHUTDOWN_TIMEOUT)
        await self.publisher.stop()
        await self.broker.close()
        log.info(f"{self.wiring.name} background workers stopped.")
