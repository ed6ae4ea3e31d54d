from pydantic import BaseModel, Field
from typing import List
import uuid
from decimal import Decimal
from saga_ledger.models.order import OrderStatus


class OrderRequest(BaseModel):
    """Schema for the order placement request body."""
    user_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Amount to charge the user's account.")


class OrderPlacementResponse(BaseModel):
    """Response schema for a newly placed order (202 Accepted)."""
    order_id: int
    status: OrderStatus
    amount: Decimal
    message: str


class OrderDetailResponse(BaseModel):
    """Schema for fetching order information."""
    id: int
    user_id: uuid.UUID
    amount: Decimal
    status: OrderStatus
    created_at: str


class OrderListResponse(BaseModel):
    orders: List[OrderDetailResponse]
