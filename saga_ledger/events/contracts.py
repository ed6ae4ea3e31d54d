"""
Wire contracts for the events exchanged between the two services.

Payloads are JSON objects with PascalCase keys. Every event carries an "Id",
the deduplication key used by the receiving inbox; it is the id of the
outbox row the event was written to.
"""
import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict, Field

ORDER_CREATED = "OrderCreated"
PAYMENT_PROCESSED = "PaymentProcessed"
PAYMENT_FAILED = "PaymentFailed"
ACCOUNT_CREATED = "AccountCreated"

REASON_ACCOUNT_NOT_FOUND = "Account not found"
REASON_INSUFFICIENT_FUNDS = "Insufficient funds"

# Balances and order amounts are stored with two decimal places
CENT = Decimal("0.01")


def is_whole_cents(amount: Decimal) -> bool:
    return amount == amount.quantize(CENT)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(BaseModel):
    """Base for all saga events; populated either by field name or by wire alias."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, alias="Id")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class OrderCreatedEvent(Event):
    """orders -> payments: ask for a debit of `amount` from the user's account."""
    order_id: int = Field(..., alias="OrderId")
    user_id: uuid.UUID = Field(..., alias="UserId")
    amount: Decimal = Field(..., gt=0, decimal_places=2, alias="Amount")


class PaymentResultEvent(Event):
    """payments -> orders: the verdict for one order, closes the saga."""
    order_id: int = Field(..., alias="OrderId")
    success: bool = Field(..., alias="Success")
    reason: Optional[str] = Field(None, alias="Reason")
    processed_at: datetime = Field(default_factory=_utcnow, alias="ProcessedAt")

    @property
    def event_type(self) -> str:
        return PAYMENT_PROCESSED if self.success else PAYMENT_FAILED


class AccountCreatedEvent(Event):
    user_id: uuid.UUID = Field(..., alias="UserId")


class FundsDepositedEvent(Event):
    """Published as a PaymentProcessed notification without an OrderId."""
    user_id: uuid.UUID = Field(..., alias="UserId")
    amount: Decimal = Field(..., alias="Amount")
    new_balance: Decimal = Field(..., alias="NewBalance")


def _load_payload(data: Union[str, bytes]) -> dict:
    payload = json.loads(data)
    if not isinstance(payload, dict):
        raise ValueError("Event payload must be a JSON object")
    if "Id" not in payload:
        raise ValueError("Event payload has no 'Id'")
    return payload


def parse_order_created(data: Union[str, bytes]) -> OrderCreatedEvent:
    return OrderCreatedEvent.model_validate(_load_payload(data))


def parse_payment_message(data: Union[str, bytes]) -> Event:
    """
    Parses anything the payments service publishes on the results queue.

    Saga results carry an OrderId; account level notifications (account
    created, deposit) do not, and come back as a bare Event so the order
    side can record and acknowledge them without effect.
    """
    payload = _load_payload(data)
    if "OrderId" in payload:
        return PaymentResultEvent.model_validate(payload)
    return Event.model_validate(payload)
