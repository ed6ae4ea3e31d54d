import logging
from fastapi import APIRouter, HTTPException, status
from saga_ledger.schemas.response import SuccessResponse
from saga_ledger.services.order_service import place_order, get_order_by_id, list_orders
from saga_ledger.schemas.order import OrderRequest, OrderPlacementResponse, OrderDetailResponse, OrderListResponse
from typing import Optional
from uuid import UUID

router = APIRouter()
log = logging.getLogger(__name__)


def _order_detail(order) -> dict:
    return OrderDetailResponse(
        id=order.id,
        user_id=order.user_id,
        amount=order.amount,
        status=order.status,
        created_at=str(order.created_at)
    ).model_dump(mode="json")


@router.post("/", status_code=status.HTTP_202_ACCEPTED, response_model=SuccessResponse)
async def create_order_endpoint(request_data: OrderRequest):
    """
    Places a new order. Returns 202 Accepted because the payment is settled asynchronously.
    """
    try:
        order = await place_order(user_id=request_data.user_id, amount=request_data.amount)
        log.info(f"Order {order.id} placed for user {request_data.user_id}.")
        data = OrderPlacementResponse(
            order_id=order.id,
            status=order.status,
            amount=order.amount,
            message="Order Accepted, payment is being processed."
        ).model_dump(mode="json")
        return SuccessResponse(data=data)
    except ValueError as e:
        log.error(f"Value error placing order: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/", response_model=SuccessResponse)
async def list_orders_endpoint(user_id: Optional[UUID] = None):
    """Lists all orders, or the orders of one user, newest first."""
    orders = await list_orders(user_id)
    data = OrderListResponse(orders=[_order_detail(o) for o in orders]).model_dump(mode="json")
    return SuccessResponse(data=data)


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: int):
    """Fetches a specific order and its payment status."""
    order = await get_order_by_id(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return SuccessResponse(data=_order_detail(order))
